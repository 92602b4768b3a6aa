"""Tests for the bounded undo history."""

import pytest

from refviewer.errors import HistoryEmpty
from refviewer.history_store import HistoryStore
from refviewer.models import CanonicalImage


def _image(n):
    return CanonicalImage(data=bytes([n]), mime="image/png", name=f"{n}.png")


class TestHistoryStore:
    """LIFO order, eviction and rollback."""

    def test_pop_returns_most_recent_first(self):
        history = HistoryStore(limit=5)
        images = [_image(i) for i in range(3)]
        for image in images:
            history.push(image)

        assert history.pop() is images[2]
        assert history.pop() is images[1]
        assert history.pop() is images[0]

    def test_push_past_limit_evicts_oldest(self):
        history = HistoryStore(limit=15)
        images = [_image(i) for i in range(20)]
        for image in images:
            history.push(image)

        assert len(history) == 15
        popped = [history.pop() for _ in range(15)]
        assert popped == list(reversed(images[5:]))
        with pytest.raises(HistoryEmpty):
            history.pop()

    def test_push_returns_evicted_entry(self):
        history = HistoryStore(limit=2)
        first, second, third = _image(1), _image(2), _image(3)

        assert history.push(first) is None
        assert history.push(second) is None
        assert history.push(third) is first

    def test_pop_empty_raises(self):
        history = HistoryStore()
        with pytest.raises(HistoryEmpty) as exc:
            history.pop()
        assert str(exc.value) == "Nothing to undo"

    def test_unpush_restores_evicted_entry(self):
        history = HistoryStore(limit=2)
        first, second, third = _image(1), _image(2), _image(3)
        history.push(first)
        history.push(second)

        evicted = history.push(third)
        assert history.unpush(evicted) is third

        assert len(history) == 2
        assert history.pop() is second
        assert history.pop() is first

    def test_unpush_without_eviction(self):
        history = HistoryStore(limit=3)
        history.push(_image(1))
        top = _image(2)
        history.push(top)

        assert history.unpush() is top
        assert len(history) == 1

    def test_peek_and_flush(self):
        history = HistoryStore()
        assert history.peek() is None
        image = _image(7)
        history.push(image)
        assert history.peek() is image
        assert len(history) == 1

        history.flush()
        assert len(history) == 0
        assert history.peek() is None

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryStore(limit=0)

    def test_default_limit(self):
        assert HistoryStore().limit == 15

"""
RefViewer Logging Module
One "refviewer" logger for the whole app: a rotating log file in the app
directory, echoed to stderr when running from source.
Import `log` and call log.info(), log.warning(), log.error().
"""

import os
import sys
import logging
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "refviewer"
LOG_FILENAME = "refviewer.log"
LOG_MAX_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 3

FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s.%(funcName)s: %(message)s"
CONSOLE_FORMAT = "[%(levelname)-7s] %(funcName)s: %(message)s"


def get_app_dir():
    """Directory holding config.json and the log file.

    REFVIEWER_HOME wins; otherwise %APPDATA%/RefViewer on Windows and
    $XDG_CONFIG_HOME/RefViewer elsewhere.
    """
    app_dir = os.environ.get('REFVIEWER_HOME')
    if not app_dir:
        if os.name == 'nt':
            base = os.environ.get('APPDATA', os.path.expanduser('~'))
        else:
            base = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        app_dir = os.path.join(base, "RefViewer")
    os.makedirs(app_dir, exist_ok=True)
    return app_dir


def log_file_path():
    return os.path.join(get_app_dir(), LOG_FILENAME)


def _file_handler():
    handler = RotatingFileHandler(
        log_file_path(), maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS,
        encoding='utf-8'
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logger():
    """Configure the app logger once; later calls return it unchanged."""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    try:
        logger.addHandler(_file_handler())
    except OSError as e:
        print(f"RefViewer: file logging disabled ({e})", file=sys.stderr)

    # Frozen builds have no console to write to
    if not getattr(sys, 'frozen', False):
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.INFO)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console)

    return logger


log = setup_logger()

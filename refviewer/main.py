"""
RefViewer - reference image viewer
`refviewer [IMAGE]` opens a viewer window, optionally with IMAGE loaded.
"""

import sys


def _create_application(argv):
    from PyQt5.QtWidgets import QApplication
    from PyQt5.QtCore import Qt

    # Must be set before the QApplication exists
    QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)

    app = QApplication(argv)
    app.setApplicationName("RefViewer")
    app.setOrganizationName("RefViewer")
    return app


def main(argv=None):
    """Run the viewer until the last window closes; returns the exit code."""
    argv = list(sys.argv if argv is None else argv)

    from refviewer.logger import setup_logger
    log = setup_logger()
    log.info("RefViewer starting up")

    app = _create_application(argv)

    from refviewer.config import config
    from refviewer.theme import apply_theme
    log.info(f"Configuration loaded from {config.config_file}")
    apply_theme(app, config.THEME)

    from refviewer.app import RefViewerApp
    viewer = RefViewerApp(app)
    viewer.start(argv[1] if len(argv) > 1 else None)

    exit_code = app.exec_()
    log.info(f"RefViewer exited with code {exit_code}")
    return exit_code


def _report_crash(error):
    from refviewer.logger import log, log_file_path
    log.critical(f"Unhandled exception: {error}", exc_info=True)

    from PyQt5.QtWidgets import QApplication, QMessageBox
    if not QApplication.instance():
        QApplication(sys.argv)
    QMessageBox.critical(
        None, "RefViewer Error",
        f"RefViewer stopped unexpectedly:\n\n{error}\n\n"
        f"Details were written to {log_file_path()}"
    )


def run():
    """Console-script entry point."""
    try:
        sys.exit(main())
    except Exception as e:
        try:
            _report_crash(e)
        except Exception:
            print(f"FATAL: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()

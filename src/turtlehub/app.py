"""TurtleHub PySide6 application entry point.

Usage::

    turtlehub owner/repo [--show-prs]
    turtlehub --set-token

After the issue browser is closed with OK, one ``#<number> <title>`` line is
printed for every issue marked fixed.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication, QDialog
from PySide6.QtCore import QTranslator, QLocale, QLibraryInfo

from turtlehub import APP_ID, APP_NAME
from turtlehub.services.settings import Settings

log = logging.getLogger("turtlehub")

USAGE = "usage: turtlehub owner/repo [--show-prs]\n       turtlehub --set-token"


def _find_translations_dir() -> Path:
    candidates = [Path(__file__).parent / "translations"]
    if getattr(sys, 'frozen', False):
        meipass = Path(sys._MEIPASS)  # type: ignore[attr-defined]
        candidates.insert(0, meipass / "turtlehub" / "translations")
    candidates.append(Path(sys.prefix) / "share" / "turtlehub" / "translations")
    for d in candidates:
        if d.is_dir():
            return d
    return candidates[0]


class TurtleHubApp:
    """Main application wrapper."""

    def __init__(self, argv: list[str]):
        self._argv = argv

        self._qt_app = QApplication.instance() or QApplication(argv)
        self._qt_app.setApplicationName(APP_NAME)
        self._qt_app.setApplicationDisplayName(APP_NAME)
        self._qt_app.setDesktopFileName(APP_ID)

        self._translator = QTranslator()
        self._qt_translator = QTranslator()
        self._load_translations()

    def _load_translations(self):
        """Load Qt and app translations for the system locale."""
        qt_locale = QLocale.system()
        qt_translations_path = QLibraryInfo.path(QLibraryInfo.LibraryPath.TranslationsPath)
        if self._qt_translator.load(qt_locale, "qtbase", "_", qt_translations_path):
            self._qt_app.installTranslator(self._qt_translator)
            log.info("Loaded Qt base translations for %s", qt_locale.name())

        qm_file = _find_translations_dir() / f"turtlehub_{qt_locale.name()[:2]}.qm"
        if qm_file.exists() and self._translator.load(str(qm_file).replace("\\", "/")):
            self._qt_app.installTranslator(self._translator)
            log.info("Loaded translations: %s", qm_file.name)

    def run(self) -> int:
        args = self._argv[1:]
        settings = Settings.get()

        if "--set-token" in args:
            from turtlehub.ui.token_dialog import TokenDialog
            dialog = TokenDialog(settings.api_base_url)
            return 0 if dialog.exec() == QDialog.Accepted else 1

        from turtlehub.services.browser import IssueBrowserParameters
        positional = [a for a in args if not a.startswith("--")]
        if len(positional) != 1:
            print(USAGE, file=sys.stderr)
            return 2
        show_prs = "--show-prs" in args or bool(settings["show_prs_by_default"])
        try:
            parameters = IssueBrowserParameters.parse(positional[0], show_prs)
        except ValueError as e:
            print(f"turtlehub: {e}", file=sys.stderr)
            return 2

        from turtlehub.ui.issue_browser_dialog import IssueBrowserDialog
        dialog = IssueBrowserDialog(parameters)
        if dialog.exec() != QDialog.Accepted:
            return 1
        for issue in dialog.issues_fixed:
            print(f"#{issue.number} {issue.title}")
        return 0


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    app = TurtleHubApp(sys.argv)
    sys.exit(app.run())


if __name__ == "__main__":
    main()

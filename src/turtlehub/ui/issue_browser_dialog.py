"""Issue browser dialog: pick the issues a commit fixes."""
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import threading
from typing import Optional

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton,
    QCheckBox, QTableWidget, QTableWidgetItem, QHeaderView, QAbstractItemView,
    QProgressBar, QMessageBox, QDialogButtonBox, QSystemTrayIcon, QStyle,
)
from PySide6.QtCore import Qt, Signal, QObject, QThread, QTimer, QUrl
from PySide6.QtGui import QDesktopServices, QKeySequence, QShortcut

from turtlehub.services.browser import (
    IssueBrowserParameters, IssueBrowserSession, UpdateChoice, log_failure,
)
from turtlehub.services.github import Issue

log = logging.getLogger(__name__)

_NOTIFICATION_TIMEOUT_MS = 15 * 1000


class _SignalHelper(QObject):
    """Helper to emit signals from worker threads."""
    update_checked = Signal(bool)


class IssueFetchThread(QThread):
    """Attaches credentials and downloads issue pages.

    The dialog applies the pages on the GUI thread.
    """

    page_loaded = Signal(object)  # list[Issue]
    fetch_failed = Signal(str)

    def __init__(self, session: IssueBrowserSession, cancel: threading.Event, parent=None):
        super().__init__(parent)
        self._session = session
        self._cancel = cancel

    def run(self):
        try:
            self._session.setup_credentials()
            for page in self._session.download_pages(self._cancel.is_set):
                self.page_loaded.emit(page)
        except Exception as e:
            self.fetch_failed.emit(log_failure(e))


class IssueBrowserDialog(QDialog):
    """Lists the issues of a repository and lets the user tick the fixed ones."""

    def __init__(self, parameters: IssueBrowserParameters, parent=None,
                 session: IssueBrowserSession | None = None):
        super().__init__(parent)
        log.info("IssueBrowserDialog(%s)", parameters.full_name)

        self.setWindowTitle(self.tr("%1 Issues").replace("%1", parameters.full_name))
        self.setMinimumSize(720, 480)

        self._session = session or IssueBrowserSession(parameters)
        self._cancel = threading.Event()
        self._fetch_thread: Optional[IssueFetchThread] = None
        self._fetch_error: Optional[str] = None
        self._update_check_started = False
        self._update_thread: Optional[threading.Thread] = None
        self._loaded = False
        self._tray: Optional[QSystemTrayIcon] = None

        self._signals = _SignalHelper()
        self._signals.update_checked.connect(self._on_update_checked)

        self._build_ui()
        self._setup_connections()
        self._setup_shortcuts()
        self._sync_controls()

    @property
    def session(self) -> IssueBrowserSession:
        return self._session

    @property
    def issues_fixed(self) -> list[Issue]:
        return self._session.issues_fixed

    # ── UI ────────────────────────────────────────────────────────

    def _build_ui(self):
        layout = QVBoxLayout(self)

        search_row = QHBoxLayout()
        search_row.addWidget(QLabel(self.tr("Search:")))
        self._search_entry = QLineEdit()
        self._search_entry.setPlaceholderText(self.tr("Number, title, author or assignee…"))
        self._search_entry.setClearButtonEnabled(True)
        search_row.addWidget(self._search_entry, 1)

        self._show_prs_check = QCheckBox(self.tr("Show pull requests"))
        self._show_prs_check.setChecked(self._session.include_pull_requests)
        search_row.addWidget(self._show_prs_check)
        layout.addLayout(search_row)

        self._table = QTableWidget()
        self._table.setColumnCount(4)
        self._table.setHorizontalHeaderLabels([
            self.tr("#"), self.tr("Title"), self.tr("Author"), self.tr("Assignee")
        ])
        self._table.setAlternatingRowColors(True)
        self._table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self._table.setSelectionMode(QAbstractItemView.SingleSelection)
        self._table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self._table.verticalHeader().setVisible(False)

        header = self._table.horizontalHeader()
        header.setSectionResizeMode(0, QHeaderView.ResizeToContents)
        header.setSectionResizeMode(1, QHeaderView.Stretch)
        header.setSectionResizeMode(2, QHeaderView.ResizeToContents)
        header.setSectionResizeMode(3, QHeaderView.ResizeToContents)
        layout.addWidget(self._table, 1)

        button_row = QHBoxLayout()
        self._reload_btn = QPushButton(self.tr("Reload"))
        self._open_btn = QPushButton(self.tr("Open on GitHub"))
        self._token_btn = QPushButton(self.tr("API Token…"))
        button_row.addWidget(self._reload_btn)
        button_row.addWidget(self._open_btn)
        button_row.addWidget(self._token_btn)

        self._update_btn = QPushButton()
        self._update_btn.setFlat(True)
        self._update_btn.setVisible(False)
        button_row.addWidget(self._update_btn)
        button_row.addStretch()

        self._button_box = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        button_row.addWidget(self._button_box)
        layout.addLayout(button_row)

        status_row = QHBoxLayout()
        self._status_label = QLabel("")
        status_row.addWidget(self._status_label, 1)
        self._count_label = QLabel("")
        self._count_label.setStyleSheet("color: #666; font-size: 11px;")
        status_row.addWidget(self._count_label)
        self._progress = QProgressBar()
        self._progress.setRange(0, 0)
        self._progress.setMaximumWidth(120)
        status_row.addWidget(self._progress)
        layout.addLayout(status_row)

    def _setup_connections(self):
        self._search_entry.textChanged.connect(self._on_search_changed)
        self._show_prs_check.toggled.connect(self._on_show_prs_toggled)

        self._table.itemSelectionChanged.connect(self._on_selection_changed)
        self._table.itemChanged.connect(self._on_item_changed)
        self._table.itemDoubleClicked.connect(lambda _item: self._open_selected())

        self._reload_btn.clicked.connect(self._on_reload)
        self._open_btn.clicked.connect(self._open_selected)
        self._token_btn.clicked.connect(self._on_edit_token)
        self._update_btn.clicked.connect(self._on_update_notification_clicked)

        self._button_box.accepted.connect(self.accept)
        self._button_box.rejected.connect(self.reject)

    def _setup_shortcuts(self):
        QShortcut(QKeySequence("Ctrl+F"), self, lambda: self._search_entry.setFocus())
        QShortcut(QKeySequence("F5"), self, self._on_reload)

    def _sync_controls(self):
        """Mirror the session flags onto the widgets."""
        s = self._session
        self._reload_btn.setEnabled(s.reload_enabled and self._update_thread is None)
        self._token_btn.setEnabled(not s.busy)
        self._search_entry.setEnabled(s.search_enabled)
        self._progress.setVisible(s.busy)
        self._open_btn.setEnabled(s.can_open_selected)
        self._status_label.setText(s.status_text)
        self._status_label.setStyleSheet("color: red;" if s.status_is_error else "")
        if s.query != self._search_entry.text():
            self._search_entry.setText(s.query)
        self._update_count()

    def _update_count(self):
        total = len(self._session.issues)
        shown = len(self._session.visible)
        if shown != total:
            self._count_label.setText(
                self.tr("Showing %1 of %2 issues").replace("%1", str(shown)).replace("%2", str(total)))
        else:
            self._count_label.setText(self.tr("%1 issues").replace("%1", str(total)))

    def _update_table(self):
        """Rebuild the rows from the visible subset, keeping the selection."""
        selected = self._session.selected
        self._table.blockSignals(True)
        self._table.setSortingEnabled(False)
        self._table.setRowCount(len(self._session.visible))

        for row, issue in enumerate(self._session.visible):
            number = QTableWidgetItem()
            number.setData(Qt.DisplayRole, issue.number)
            number.setData(Qt.UserRole, issue)
            number.setFlags(number.flags() | Qt.ItemIsUserCheckable)
            number.setCheckState(Qt.Checked if issue.checked else Qt.Unchecked)
            self._table.setItem(row, 0, number)

            title = issue.title
            if issue.is_pull_request:
                title = self.tr("[PR] %1").replace("%1", title)
            self._table.setItem(row, 1, QTableWidgetItem(title))
            self._table.setItem(row, 2, QTableWidgetItem(issue.author))
            self._table.setItem(row, 3, QTableWidgetItem(issue.assignee or ""))

        self._table.setSortingEnabled(True)
        self._table.clearSelection()
        if selected is not None:
            for row in range(self._table.rowCount()):
                if self._table.item(row, 0).data(Qt.UserRole) is selected:
                    self._table.selectRow(row)
                    break
        self._table.blockSignals(False)
        self._session.select(selected if self._table.selectedItems() else None)
        self._open_btn.setEnabled(self._session.can_open_selected)
        self._update_count()

    # ── Loading ───────────────────────────────────────────────────

    def showEvent(self, event):
        super().showEvent(event)
        if not self._loaded:
            self._loaded = True
            QTimer.singleShot(0, self._start_fetch)

    def _start_fetch(self):
        if self._fetch_thread is not None or self._update_thread is not None:
            return
        if self._cancel.is_set():
            return
        self._fetch_error = None
        self._session.begin_fetch()
        self._sync_controls()

        self._fetch_thread = IssueFetchThread(self._session, self._cancel, self)
        self._fetch_thread.page_loaded.connect(self._on_page_loaded)
        self._fetch_thread.fetch_failed.connect(self._on_fetch_failed)
        self._fetch_thread.finished.connect(self._on_fetch_finished)
        self._fetch_thread.start()

    def _on_page_loaded(self, page: list):
        if self._cancel.is_set():
            return
        self._session.add_page(page)
        self._update_table()

    def _on_fetch_failed(self, message: str):
        self._fetch_error = message

    def _on_fetch_finished(self):
        thread, self._fetch_thread = self._fetch_thread, None
        if thread is not None:
            thread.deleteLater()
        if self._cancel.is_set():
            return

        self._session.end_fetch()
        if self._fetch_error is not None:
            self._show_error(self._fetch_error)
            return
        self._start_update_check()
        self._sync_controls()

    def _show_error(self, message: str):
        self._session.fail(message)
        self._sync_controls()
        QMessageBox.critical(self, "TurtleHub", message)

    def _on_reload(self):
        if self._fetch_thread is not None or self._update_thread is not None:
            return
        if not self._session.reload_enabled:
            return
        log.info("Reload issues")
        self._session.reset()
        self._update_table()
        self._start_fetch()

    # ── Filtering & selection ─────────────────────────────────────

    def _on_search_changed(self, text: str):
        self._session.set_query(text)
        self._update_table()

    def _on_show_prs_toggled(self, checked: bool):
        self._session.set_include_pull_requests(checked)
        self._update_table()

    def _on_selection_changed(self):
        rows = self._table.selectionModel().selectedRows()
        issue = self._table.item(rows[0].row(), 0).data(Qt.UserRole) if rows else None
        self._session.select(issue)
        self._open_btn.setEnabled(self._session.can_open_selected)

    def _on_item_changed(self, item: QTableWidgetItem):
        if item.column() != 0:
            return
        issue = item.data(Qt.UserRole)
        if issue is not None:
            self._session.set_checked(issue, item.checkState() == Qt.Checked)

    def _open_selected(self):
        issue = self._session.selected
        if issue is None:
            return
        log.info("Opening %s", issue.html_url)
        QDesktopServices.openUrl(QUrl(issue.html_url))

    def _on_edit_token(self):
        from turtlehub.ui.token_dialog import TokenDialog
        dialog = TokenDialog(self._session.config.base_url, self)
        if dialog.exec() == QDialog.Accepted:
            self._session.config.token = dialog.token or None

    # ── Update notification ───────────────────────────────────────

    def _start_update_check(self):
        if self._update_check_started or self._session.update_checker.checked:
            return
        if not self._session.settings["check_for_updates"]:
            return
        self._update_check_started = True

        def do_check():
            self._signals.update_checked.emit(self._session.check_for_update())

        self._update_thread = threading.Thread(target=do_check, daemon=True)
        self._update_thread.start()

    def _on_update_checked(self, found: bool):
        self._update_thread = None
        if self._cancel.is_set():
            return
        self._sync_controls()
        if not found:
            return
        tag = self._session.update_checker.latest_release.tag_name
        text = self.tr("TurtleHub %1 is available. Click here to update.").replace("%1", tag)

        self._update_btn.setText(text)
        self._update_btn.setVisible(True)

        if QSystemTrayIcon.isSystemTrayAvailable():
            self._tray = QSystemTrayIcon(self.style().standardIcon(QStyle.SP_MessageBoxInformation), self)
            self._tray.setToolTip(text)
            self._tray.messageClicked.connect(self._on_update_notification_clicked)
            self._tray.activated.connect(lambda _reason: self._on_update_notification_clicked())
            self._tray.show()
            self._tray.showMessage(self.tr("Update Notice"), text,
                                   QSystemTrayIcon.Information, _NOTIFICATION_TIMEOUT_MS)

    def _on_update_notification_clicked(self):
        release = self._session.update_checker.latest_release
        if release is None:
            return
        reply = QMessageBox.question(
            self, self.tr("Update Notice"), self._session.update_message(),
            QMessageBox.Yes | QMessageBox.No | QMessageBox.Cancel,
            QMessageBox.Yes,
        )
        choice = {
            QMessageBox.Yes: UpdateChoice.ACCEPT,
            QMessageBox.No: UpdateChoice.DECLINE,
        }.get(reply, UpdateChoice.CANCEL)

        close = self._session.resolve_update(choice)
        if choice is not UpdateChoice.CANCEL:
            self._hide_update_notification()
        if close:
            log.info("Opening %s", release.html_url)
            QDesktopServices.openUrl(QUrl(release.html_url))
            self.reject()

    def _hide_update_notification(self):
        self._update_btn.setVisible(False)
        if self._tray is not None:
            self._tray.hide()

    # ── Closing ───────────────────────────────────────────────────

    def done(self, result: int):
        self._cancel.set()
        if self._fetch_thread is not None:
            # Lets the request in flight finish; no further page is asked for
            self._fetch_thread.wait()
        self._hide_update_notification()
        super().done(result)

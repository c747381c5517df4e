"""Dialog for storing the GitHub API token in the system keychain."""
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import threading

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QFormLayout, QLineEdit, QPushButton,
    QLabel, QDialogButtonBox, QMessageBox,
)
from PySide6.QtCore import Signal, QObject

from turtlehub.services.github import GitHubConfig, GitHubError, check_credentials
from turtlehub.services.keystore import (
    MasterPasswordError, backend_name, is_secure_backend, get_stored_api_token,
    store_api_token,
)


class _SignalHelper(QObject):
    """Helper to emit signals from worker threads."""
    status_update = Signal(str)
    enable_button = Signal(bool)


class TokenDialog(QDialog):
    """Enter, test and save the API token used for one GitHub base address."""

    def __init__(self, base_url: str, parent=None):
        super().__init__(parent)
        self.setWindowTitle(self.tr("GitHub API Token"))
        self.setModal(True)
        self.resize(480, 200)

        self._base_url = base_url
        self.token = get_stored_api_token(base_url) or ""

        self._signals = _SignalHelper()
        self._signals.status_update.connect(lambda txt: self._status.setText(txt))
        self._signals.enable_button.connect(lambda val: self._test_btn.setEnabled(val))

        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)

        if is_secure_backend():
            banner = QLabel(self.tr("🔒 Tokens stored in %1").replace("%1", backend_name()))
        else:
            banner = QLabel(
                self.tr("⚠️ No system keychain. Tokens are stored in an encrypted file "
                        "protected by a master password.")
            )
        banner.setWordWrap(True)
        layout.addWidget(banner)

        form = QFormLayout()
        form.addRow(self.tr("API URL:"), QLabel(self._base_url))
        self._token_entry = QLineEdit(self.token)
        self._token_entry.setEchoMode(QLineEdit.Password)
        self._token_entry.setPlaceholderText(self.tr("Leave empty for anonymous access"))
        form.addRow(self.tr("Token:"), self._token_entry)
        layout.addLayout(form)

        row = QHBoxLayout()
        self._status = QLabel("")
        self._status.setWordWrap(True)
        row.addWidget(self._status, 1)
        self._test_btn = QPushButton(self.tr("Test Connection"))
        self._test_btn.clicked.connect(self._on_test)
        row.addWidget(self._test_btn)
        layout.addLayout(row)

        buttons = QDialogButtonBox(QDialogButtonBox.Save | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._on_save)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _on_test(self):
        config = GitHubConfig(token=self._token_entry.text().strip(), base_url=self._base_url)
        if not config.token:
            self._status.setText(self.tr("✗ Enter a token first"))
            return
        self._status.setText(self.tr("Testing…"))
        self._test_btn.setEnabled(False)

        def do_test():
            try:
                if check_credentials(config):
                    self._signals.status_update.emit(self.tr("✓ Token is valid"))
                else:
                    self._signals.status_update.emit(self.tr("✗ Token was rejected"))
            except GitHubError as e:
                self._signals.status_update.emit(self.tr("✗ %1").replace("%1", str(e)))
            finally:
                self._signals.enable_button.emit(True)

        threading.Thread(target=do_test, daemon=True).start()

    def _on_save(self):
        token = self._token_entry.text().strip()
        try:
            store_api_token(self._base_url, token)
        except MasterPasswordError as e:
            QMessageBox.warning(self, self.tr("GitHub API Token"), str(e))
            return
        self.token = token
        self.accept()

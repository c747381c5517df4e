"""Secure storage for GitHub API tokens.

Tokens are keyed by the API base address they belong to, so a token for
``https://api.github.com`` is never sent to a GitHub Enterprise host.

Supports:
  - System keychain via ``keyring`` (macOS Keychain, Windows Credential
    Locker, Secret Service on Linux)
  - Fallback: AES-encrypted file with a user-provided master password (Fernet)

SPDX-License-Identifier: GPL-3.0-or-later
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

def _(s): return s  # no-op; UI handles translation

log = logging.getLogger(__name__)

_SERVICE_PREFIX = "turtlehub"


class MasterPasswordError(Exception):
    """The encrypted secrets file does not open with the given master password."""


# ── Backend detection ─────────────────────────────────────────────────

def _detect_backend() -> str:
    """Detect whether keyring has a usable backend."""
    backend = keyring.get_keyring()
    # The fail/null backends have priority 0 or below
    try:
        usable = backend.priority > 0
    except Exception:
        usable = False
    return "keyring" if usable else "fallback"


_backend = _detect_backend()


# ── Public API ────────────────────────────────────────────────────────

def store_secret(service: str, key: str, value: str) -> None:
    """Store a secret in the platform keychain.

    Raises MasterPasswordError if the fallback file will not decrypt; the
    file is left untouched.
    """
    label = f"{_SERVICE_PREFIX}/{service}/{key}"
    if _backend == "keyring":
        keyring.set_password(_SERVICE_PREFIX, label, value)
    else:
        _fallback_store(label, value)


def get_secret(service: str, key: str) -> Optional[str]:
    """Retrieve a secret from the platform keychain.

    Returns None if not found.
    """
    label = f"{_SERVICE_PREFIX}/{service}/{key}"
    if _backend == "keyring":
        try:
            return keyring.get_password(_SERVICE_PREFIX, label)
        except KeyringError as e:
            log.warning("Could not read %s from keychain: %s", label, e)
            return None
    try:
        return _fallback_get(label)
    except MasterPasswordError as e:
        log.warning("Could not read %s: %s", label, e)
        return None


def delete_secret(service: str, key: str) -> None:
    """Delete a secret from the platform keychain."""
    label = f"{_SERVICE_PREFIX}/{service}/{key}"
    if _backend == "keyring":
        try:
            keyring.delete_password(_SERVICE_PREFIX, label)
        except PasswordDeleteError:
            pass  # not found, fine
    else:
        _fallback_delete(label)


def backend_name() -> str:
    """Return the name of the active backend for display."""
    if _backend == "keyring":
        return type(keyring.get_keyring()).__name__
    return _("Encrypted file (fallback)")


def is_secure_backend() -> bool:
    """True if using a real system keychain."""
    return _backend == "keyring"


# ── API tokens ────────────────────────────────────────────────────────

def _token_service(base_url: str) -> str:
    return base_url.rstrip("/").split("://", 1)[-1]


def get_stored_api_token(base_url: str) -> Optional[str]:
    """Return the token stored for an API base address, or None."""
    return get_secret(_token_service(base_url), "api_token") or None


def store_api_token(base_url: str, token: str) -> None:
    if token:
        store_secret(_token_service(base_url), "api_token", token)
    else:
        delete_api_token(base_url)


def delete_api_token(base_url: str) -> None:
    delete_secret(_token_service(base_url), "api_token")


# ── Fallback: Fernet-encrypted file with master password ─────────────

_FALLBACK_DIR = Path.home() / ".config" / "turtlehub"
_FALLBACK_PATH = _FALLBACK_DIR / ".secrets.enc"
_FALLBACK_SALT_PATH = _FALLBACK_DIR / ".secrets.salt"
_FALLBACK_WARNED = False

# In-memory cache of the master password for the session
_master_password: Optional[str] = None


def _fallback_warn() -> None:
    global _FALLBACK_WARNED
    if not _FALLBACK_WARNED:
        log.warning(
            "No system keychain available. API tokens are stored with AES "
            "encryption (Fernet) in %s and need a master password.",
            _FALLBACK_PATH,
        )
        _FALLBACK_WARNED = True


def _get_master_password() -> str:
    """Get the master password, prompting the user if needed."""
    global _master_password
    if _master_password is not None:
        return _master_password

    env_password = os.environ.get("TURTLEHUB_MASTER_PASSWORD")
    if env_password:
        _master_password = env_password
        return env_password

    from PySide6.QtWidgets import QApplication, QInputDialog, QLineEdit
    if QApplication.instance() is not None:
        if _FALLBACK_PATH.exists():
            prompt = _("Enter master password to unlock credentials:")
        else:
            prompt = _("Create a master password for credential storage:")
        password, ok = QInputDialog.getText(
            None, _("Master Password"), prompt, QLineEdit.Password,
        )
        if ok and password:
            _master_password = password
            return password

    import getpass
    if _FALLBACK_PATH.exists():
        password = getpass.getpass("Enter master password to unlock credentials: ")
    else:
        password = getpass.getpass("Create a master password for credential storage: ")
    _master_password = password
    return password


def clear_master_password() -> None:
    """Clear the cached master password."""
    global _master_password
    _master_password = None


def _derive_fernet_key(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from password + salt using PBKDF2."""
    kdf_key = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 480_000, dklen=32)
    return base64.urlsafe_b64encode(kdf_key)


def _get_or_create_salt() -> bytes:
    if _FALLBACK_SALT_PATH.exists():
        return _FALLBACK_SALT_PATH.read_bytes()
    salt = os.urandom(32)
    _FALLBACK_DIR.mkdir(parents=True, exist_ok=True)
    _FALLBACK_SALT_PATH.write_bytes(salt)
    _FALLBACK_SALT_PATH.chmod(0o600)
    return salt


def _fernet():
    from cryptography.fernet import Fernet
    key = _derive_fernet_key(_get_master_password(), _get_or_create_salt())
    return Fernet(key)


def _fallback_load() -> dict:
    """Load and decrypt the secrets file."""
    if not _FALLBACK_PATH.exists():
        return {}
    from cryptography.fernet import InvalidToken
    try:
        decrypted = _fernet().decrypt(_FALLBACK_PATH.read_bytes())
    except InvalidToken as e:
        clear_master_password()
        raise MasterPasswordError(_("Wrong master password for {path}").format(path=_FALLBACK_PATH)) from e
    return json.loads(decrypted)


def _fallback_save(data: dict) -> None:
    raw = json.dumps(data, ensure_ascii=False).encode("utf-8")
    encrypted = _fernet().encrypt(raw)

    _FALLBACK_DIR.mkdir(parents=True, exist_ok=True)
    _FALLBACK_PATH.write_bytes(encrypted)
    _FALLBACK_PATH.chmod(0o600)


def _fallback_store(label: str, value: str) -> None:
    _fallback_warn()
    data = _fallback_load()
    data[label] = value
    _fallback_save(data)


def _fallback_get(label: str) -> Optional[str]:
    _fallback_warn()
    return _fallback_load().get(label)


def _fallback_delete(label: str) -> None:
    data = _fallback_load()
    if data.pop(label, None) is not None:
        _fallback_save(data)

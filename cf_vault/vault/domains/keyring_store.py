"""Secret store backed by the OS keyring.

Uses whatever native backend `keyring` selects (macOS Keychain, Secret Service,
KWallet, Windows Credential Locker). When no native backend is usable, or
CF_VAULT_BACKEND=file, secrets go to an encrypted file under ~/.cf-vault/keys/
unlocked with a passphrase. The passphrase is checked against a reference
entry when the file is opened. There is never a plaintext fallback, and the
keyrings.alt stores `keyring` may chain in are not treated as native.
"""
import os
import sys
import getpass
import logging
from pathlib import Path
from typing import Optional

import keyring
import keyring.errors
from keyring.backends import chainer, fail, null

from .config_loader import PROJECT_NAME, get_config_dir
from .errors import (
    BackendUnavailableError,
    DecryptionFailedError,
    SecretNotFoundError,
    WriteDeniedError,
)

logger = logging.getLogger(__name__)

PASSPHRASE_ENV = "CF_VAULT_FILE_PASSPHRASE"
BACKEND_ENV = "CF_VAULT_BACKEND"
FILE_BACKEND = "file"

# Reference entry keyrings.alt itself writes into a new encrypted file.
REFERENCE_SERVICE = "keyring-setting"
REFERENCE_USERNAME = "password reference"
REFERENCE_VALUE = "password reference value"

# Raised by keyrings.alt when decrypting with the wrong key.
_DECRYPT_ERRORS = (AssertionError, ValueError)

# Passphrase is asked for at most once per process.
_passphrase_cache: Optional[str] = None


def file_passphrase_prompt(prompt: str = "Enter passphrase to unlock the cf-vault key file") -> str:
    """
    Get the passphrase for the encrypted file store.

    CF_VAULT_FILE_PASSPHRASE wins so unattended runs never block on a prompt.
    """
    global _passphrase_cache

    env_value = os.getenv(PASSPHRASE_ENV)
    if env_value is not None:
        return env_value

    if _passphrase_cache is None:
        if not sys.stdin.isatty():
            raise BackendUnavailableError(
                f"file keyring is locked and stdin is not a terminal, set {PASSPHRASE_ENV} to unlock it"
            )
        _passphrase_cache = getpass.getpass(f"{prompt}: ")
    return _passphrase_cache


def is_native_backend(backend) -> bool:
    """True for an OS-provided store, False for fail/null and the keyrings.alt file stores."""
    if isinstance(backend, (fail.Keyring, null.Keyring)):
        return False
    if type(backend).__module__.startswith("keyrings.alt"):
        return False
    if isinstance(backend, chainer.ChainerBackend):
        return any(is_native_backend(b) for b in backend.backends)
    return True


class KeyringSecretStore:
    """set/get of opaque secrets by string key."""

    def __init__(self, backend=None, service_name: str = PROJECT_NAME, file_dir: Optional[Path] = None):
        self._backend = backend
        self.service_name = service_name
        self.file_dir = Path(file_dir) if file_dir else get_config_dir() / "keys"

    @property
    def backend(self):
        """Lazy-select the backend on first use."""
        if self._backend is None:
            self._backend = self._select_backend()
        return self._backend

    def _select_backend(self):
        if os.getenv(BACKEND_ENV, "").lower() == FILE_BACKEND:
            logger.debug(f"{BACKEND_ENV}={FILE_BACKEND}, using encrypted file keyring")
            return self._file_backend()

        try:
            backend = keyring.get_keyring()
        except keyring.errors.KeyringError as e:
            raise BackendUnavailableError(f"failed to open keyring backend: {str(e).lower()}")

        # Chained writes can land in a keyrings.alt file; keep only the best native member.
        if isinstance(backend, chainer.ChainerBackend):
            native = [b for b in backend.backends if is_native_backend(b)]
            backend = native[0] if native else None

        if backend is None or not is_native_backend(backend):
            logger.debug("No native keyring available, using encrypted file keyring")
            return self._file_backend()

        logger.debug(f"Using keyring backend: {type(backend).__name__}")
        return backend

    def _file_backend(self):
        try:
            from keyrings.alt.file import EncryptedKeyring
        except ImportError as e:
            raise BackendUnavailableError(f"encrypted file keyring unavailable: {e}")

        backend = EncryptedKeyring()
        backend.file_path = str(self.file_dir / "keyring.cfg")
        backend.keyring_key = file_passphrase_prompt()
        self._verify_passphrase(backend)
        return backend

    def _verify_passphrase(self, backend) -> None:
        """
        Check the passphrase against the file's reference entry.

        A new file gets the entry written on first open. An existing file
        without one can't be checked here; bad reads then fail in get().
        """
        try:
            reference = backend.get_password(REFERENCE_SERVICE, REFERENCE_USERNAME)
        except _DECRYPT_ERRORS:
            reference = ""

        if reference is not None and reference != REFERENCE_VALUE:
            raise DecryptionFailedError(f"incorrect passphrase for the key file at {backend.file_path}")

        if reference is None:
            if os.path.exists(backend.file_path):
                logger.debug(f"No passphrase reference in {backend.file_path}, skipping check")
                return
            logger.debug(f"Writing passphrase reference to {backend.file_path}")
            try:
                backend.set_password(REFERENCE_SERVICE, REFERENCE_USERNAME, REFERENCE_VALUE)
            except OSError as e:
                raise WriteDeniedError(f"error initializing key file: {e}")

    def set(self, key: str, secret: str) -> None:
        """
        Store a secret.

        Raises:
            WriteDeniedError: If the backend refuses the write
            BackendUnavailableError: If the backend can't be used
        """
        backend = self.backend
        try:
            backend.set_password(self.service_name, key, secret)
        except keyring.errors.PasswordSetError as e:
            raise WriteDeniedError(f"error adding credentials to keyring: {e}")
        except keyring.errors.KeyringError as e:
            raise BackendUnavailableError(f"keyring backend unavailable: {e}")
        except OSError as e:
            raise WriteDeniedError(f"error adding credentials to keyring: {e}")
        logger.debug(f"Stored secret for {key}")

    def get(self, key: str) -> str:
        """
        Fetch a secret.

        Raises:
            SecretNotFoundError: If nothing is stored under the key
            DecryptionFailedError: If the stored value can't be decrypted
            BackendUnavailableError: If the backend can't be used
        """
        backend = self.backend
        try:
            secret = backend.get_password(self.service_name, key)
        except keyring.errors.KeyringLocked as e:
            raise BackendUnavailableError(f"keyring is locked: {e}")
        except keyring.errors.KeyringError as e:
            raise BackendUnavailableError(f"keyring backend unavailable: {e}")
        except _DECRYPT_ERRORS as e:
            raise DecryptionFailedError(f"failed to decrypt secret '{key}', check the passphrase: {e!r}")

        if secret is None:
            raise SecretNotFoundError(key)
        return secret

"""Fernet encryption for OAuth tokens stored in the database."""

from __future__ import annotations

import base64
import os

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger


class EncryptionError(Exception):
    """Raised when encryption/decryption operations fail."""


class EncryptionKeyError(EncryptionError):
    """Raised when a stored token was encrypted with a different ENCRYPTION_KEY."""


_cipher: Fernet | None = None


def _get_encryption_key() -> bytes:
    """Read the Fernet key from ENCRYPTION_KEY, or generate a throwaway one."""
    key_env = os.getenv("ENCRYPTION_KEY")
    if key_env:
        return key_env.encode()

    logger.warning(
        "ENCRYPTION_KEY not set. Generating a process-local key (NOT suitable for production). "
        "Stored Strava and Google tokens will be unreadable after a restart."
    )
    return Fernet.generate_key()


def _get_cipher() -> Fernet:
    global _cipher
    if _cipher is None:
        try:
            _cipher = Fernet(_get_encryption_key())
        except ValueError as e:
            raise EncryptionError("Invalid ENCRYPTION_KEY format. Must be a Fernet key (use Fernet.generate_key()).") from e
    return _cipher


def reset_cipher() -> None:
    """Drop the cached cipher so the next call re-reads ENCRYPTION_KEY."""
    global _cipher
    _cipher = None


def encrypt_token(token: str) -> str:
    """Encrypt a token string for storage.

    Raises:
        EncryptionError: If encryption fails
    """
    try:
        encrypted = _get_cipher().encrypt(token.encode())
        return base64.urlsafe_b64encode(encrypted).decode()
    except EncryptionError:
        raise
    except Exception as e:
        logger.error(f"Token encryption failed: {type(e).__name__}")
        raise EncryptionError(f"Failed to encrypt token: {e}") from e


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a token produced by encrypt_token.

    Raises:
        EncryptionKeyError: If the token was encrypted with another key
        EncryptionError: If decryption fails for other reasons
    """
    try:
        encrypted_bytes = base64.urlsafe_b64decode(encrypted_token.encode())
        return _get_cipher().decrypt(encrypted_bytes).decode()
    except InvalidToken as e:
        error_msg = (
            "Token decryption failed: wrong encryption key. "
            "Set ENCRYPTION_KEY to the key used to encrypt existing tokens, or reconnect the account."
        )
        logger.error(error_msg)
        raise EncryptionKeyError(error_msg) from e
    except EncryptionError:
        raise
    except Exception as e:
        logger.error(f"Token decryption failed: {type(e).__name__}")
        raise EncryptionError(f"Failed to decrypt token: {e}") from e

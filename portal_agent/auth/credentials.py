"""
Credentials, Codec & Stores
===========================
Everything the coordinator needs to turn "stored account" into
"plaintext for exactly one login attempt".

    - ``Credentials``          — user id + encrypted secret
    - ``CredentialCodec``      — reversible symmetric encryption contract
    - ``AesCredentialCodec``   — AES-256-CBC, scrypt-derived key,
                                 ``<iv hex>:<data hex>`` wire format
    - ``CredentialStore``      — where stored credentials come from
    - ``EnvCredentialStore``   — ``{PREFIX}_USER_ID`` / ``{PREFIX}_SECRET``
    - ``StaticCredentialStore``— fixed credentials (embedding, tests)

Security:
    - The secret is kept encrypted on every object here.
    - ``decrypt`` never raises: malformed input yields ``""``.
    - Neither user ids nor secrets are ever logged.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Mapping, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = logging.getLogger(__name__)

_IV_LENGTH = 16
_KEY_LENGTH = 32


@dataclass(frozen=True)
class Credentials:
    """Stored account: ``secret`` is ciphertext produced by a codec."""
    user_id: str = ""
    secret: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.user_id and self.secret)

    def __repr__(self) -> str:
        return f"Credentials(user_id=<{len(self.user_id)} chars>, secret=<hidden>)"


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

class CredentialCodec(ABC):

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        ...

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str:
        """Return the plaintext, or ``""`` if *ciphertext* is malformed."""
        ...


class AesCredentialCodec(CredentialCodec):
    """AES-256-CBC with PKCS7 padding.

    The key is derived once with scrypt (N=16384, r=8, p=1), so ciphertexts
    written by other tools using the same passphrase/salt decrypt here too.
    """

    def __init__(self, passphrase: str, salt: str = "salt"):
        kdf = Scrypt(salt=salt.encode("utf-8"), length=_KEY_LENGTH, n=2 ** 14, r=8, p=1)
        self._key = kdf.derive(passphrase.encode("utf-8"))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        iv = os.urandom(_IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(data) + encryptor.finalize()
        return f"{iv.hex()}:{encrypted.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext:
            return ""
        parts = ciphertext.split(":")
        if len(parts) != 2:
            logger.warning("[CODEC] Invalid ciphertext format")
            return ""
        try:
            iv = bytes.fromhex(parts[0])
            encrypted = bytes.fromhex(parts[1])
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            data = decryptor.update(encrypted) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return (unpadder.update(data) + unpadder.finalize()).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.warning(f"[CODEC] Decryption failed: {type(exc).__name__}")
            return ""


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class CredentialStore(ABC):

    @abstractmethod
    def load(self) -> Optional[Credentials]:
        """Return stored credentials, or None if nothing is stored."""
        ...


class StaticCredentialStore(CredentialStore):

    def __init__(self, credentials: Optional[Credentials] = None):
        self._credentials = credentials

    def load(self) -> Optional[Credentials]:
        return self._credentials


class EnvCredentialStore(CredentialStore):
    """Credentials from environment variables.

    Example: prefixes ``["PORTAL", "UNIPOST"]`` → checks ``PORTAL_USER_ID``,
    ``PORTAL_SECRET``, then ``UNIPOST_USER_ID``, ``UNIPOST_SECRET``.
    ``*_SECRET`` must already be encrypted (see ``python -m portal_agent encrypt``).
    """

    def __init__(
        self,
        prefixes: Optional[List[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.prefixes = prefixes or ["PORTAL", "UNIPOST"]
        self._environ = environ

    def load(self) -> Optional[Credentials]:
        env = os.environ if self._environ is None else self._environ
        user_id = ""
        secret = ""
        for prefix in self.prefixes:
            if not user_id:
                user_id = env.get(f"{prefix}_USER_ID", "")
            if not secret:
                secret = env.get(f"{prefix}_SECRET", "")
        if not user_id and not secret:
            logger.info("[CREDENTIALS] No stored credentials in environment")
            return None
        return Credentials(user_id=user_id, secret=secret)

"""Session-scoped encrypted credential storage.

The vault keeps a user-supplied provider key encrypted at rest for a bounded
time. Cryptography and storage are reached through a :class:`SecretStore`,
so a host can substitute its own authenticated cipher and ephemeral storage.

Security note:
    Never log plaintext, ciphertext, IVs or key material. The vault protects
    against casual inspection and persistence, not against code running in
    the same process.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from secure_tts.exceptions import DecryptionError, EncryptionError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
STORAGE_KEY = "tts-api-key-secure"
NONCE_SIZE = 12


class KeyHandle:
    """Opaque reference to a symmetric key.

    The raw key bytes are only readable by the store that created the handle.
    """

    __slots__ = ("_material", "_owner")

    def __init__(self, material: bytes, owner: object) -> None:
        self._material = material
        self._owner = owner

    def __repr__(self) -> str:
        return "KeyHandle(<redacted>)"


class SecretStore(ABC):
    """Capability interface for authenticated encryption and session storage."""

    @abstractmethod
    def generate_key(self) -> KeyHandle:
        """Create a fresh symmetric key."""

    @abstractmethod
    def encrypt(self, key: KeyHandle, plaintext: bytes) -> tuple[bytes, bytes]:
        """Encrypt ``plaintext`` and return ``(ciphertext, iv)``."""

    @abstractmethod
    def decrypt(self, key: KeyHandle, ciphertext: bytes, iv: bytes) -> bytes:
        """Authenticate and decrypt; raise :class:`DecryptionError` on failure."""

    @abstractmethod
    def persist(self, name: str, value: str) -> None:
        """Store ``value`` for the lifetime of the session."""

    @abstractmethod
    def retrieve(self, name: str) -> str | None:
        """Return the stored value or ``None``."""

    @abstractmethod
    def discard(self, name: str) -> None:
        """Remove a stored value; a no-op when nothing is stored."""


class AesGcmSessionStore(SecretStore):
    """In-memory session storage with AES-256-GCM encryption.

    Storage lives only as long as this object, which plays the role of a
    browser tab's session storage.
    """

    def __init__(self) -> None:
        self._storage: dict[str, str] = {}

    def generate_key(self) -> KeyHandle:
        return KeyHandle(AESGCM.generate_key(bit_length=256), owner=self)

    def encrypt(self, key: KeyHandle, plaintext: bytes) -> tuple[bytes, bytes]:
        iv = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(self._material(key)).encrypt(iv, plaintext, None)
        return ciphertext, iv

    def decrypt(self, key: KeyHandle, ciphertext: bytes, iv: bytes) -> bytes:
        try:
            return AESGCM(self._material(key)).decrypt(iv, ciphertext, None)
        except (InvalidTag, ValueError) as exc:
            raise DecryptionError("Stored credential could not be decrypted") from exc

    def persist(self, name: str, value: str) -> None:
        self._storage[name] = value

    def retrieve(self, name: str) -> str | None:
        return self._storage.get(name)

    def discard(self, name: str) -> None:
        self._storage.pop(name, None)

    def _material(self, key: KeyHandle) -> bytes:
        if key._owner is not self:
            raise DecryptionError("Key handle belongs to a different store")
        return key._material


@dataclass(frozen=True, slots=True)
class EncryptedBlob:
    """Ciphertext, IV and creation time of a stored credential.

    Attributes
    ----------
    ciphertext : bytes
        AEAD ciphertext including the authentication tag.
    iv : bytes
        Nonce used for this encryption only.
    created_at : float
        Wall-clock seconds when the blob was produced.
    """

    ciphertext: bytes
    iv: bytes
    created_at: float

    def to_json(self) -> str:
        """Serialize the blob for session storage.

        Returns
        -------
        str
            JSON document with base64 fields.
        """
        return json.dumps(
            {
                "data": base64.b64encode(self.ciphertext).decode("ascii"),
                "iv": base64.b64encode(self.iv).decode("ascii"),
                "timestamp": self.created_at,
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "EncryptedBlob":
        """Parse a stored blob.

        Parameters
        ----------
        raw : str
            JSON produced by :meth:`to_json`.

        Returns
        -------
        EncryptedBlob
            Parsed blob.

        Raises
        ------
        DecryptionError
            If the document is malformed.
        """
        try:
            document = json.loads(raw)
            return cls(
                ciphertext=base64.b64decode(document["data"], validate=True),
                iv=base64.b64decode(document["iv"], validate=True),
                created_at=float(document["timestamp"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise DecryptionError("Stored credential is corrupted") from exc


class CredentialVault:
    """Encrypt a credential at rest with an absolute expiry.

    Parameters
    ----------
    store : SecretStore | None, default=None
        Crypto and storage capability. A fresh :class:`AesGcmSessionStore`
        is used when omitted.
    ttl_seconds : float, default=1800
        Lifetime of a saved credential, measured from :meth:`save`.
    clock : Callable[[], float], default=time.time
        Source of the current wall-clock time.
    storage_key : str, default="tts-api-key-secure"
        Name under which the blob is persisted.
    """

    def __init__(
        self,
        store: SecretStore | None = None,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        storage_key: str = STORAGE_KEY,
    ) -> None:
        self._store = store if store is not None else AesGcmSessionStore()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._storage_key = storage_key
        self._key: KeyHandle | None = None

    def save(self, secret: str) -> None:
        """Encrypt and store ``secret``, replacing any previous credential.

        Parameters
        ----------
        secret : str
            Credential to protect.

        Returns
        -------
        None
            Persists the encrypted blob.

        Raises
        ------
        EncryptionError
            If the secret is not a non-empty string or encryption fails.
        """
        if not isinstance(secret, str) or not secret:
            raise EncryptionError("A non-empty credential is required")
        try:
            ciphertext, iv = self._store.encrypt(
                self._session_key(), secret.encode("utf-8")
            )
        except Exception as exc:
            logger.error("Credential encryption failed: %s", type(exc).__name__)
            raise EncryptionError("Credential could not be encrypted") from exc
        blob = EncryptedBlob(ciphertext=ciphertext, iv=iv, created_at=self._clock())
        self._store.persist(self._storage_key, blob.to_json())

    def load(self) -> str | None:
        """Return the stored credential, or ``None`` if none is available.

        Expired, corrupted or undecryptable entries are cleared and reported
        as absent.

        Returns
        -------
        str | None
            Decrypted credential.
        """
        raw = self._store.retrieve(self._storage_key)
        if raw is None:
            return None
        try:
            blob = EncryptedBlob.from_json(raw)
            if self._clock() - blob.created_at > self.ttl_seconds:
                logger.info("Stored credential expired; clearing")
                self.clear()
                return None
            if self._key is None:
                raise DecryptionError("No session key is available")
            plaintext = self._store.decrypt(self._key, blob.ciphertext, blob.iv)
            return plaintext.decode("utf-8")
        except (DecryptionError, UnicodeDecodeError) as exc:
            logger.warning("Discarding unreadable stored credential: %s", exc)
            self.clear()
            return None

    def has_credential(self) -> bool:
        """Return whether a blob is currently stored (without decrypting)."""
        return self._store.retrieve(self._storage_key) is not None

    def rotate_key(self) -> None:
        """Replace the session key. Existing blobs no longer decrypt."""
        self._key = self._store.generate_key()

    def clear(self) -> None:
        """Remove the stored blob and forget the session key. Idempotent."""
        self._store.discard(self._storage_key)
        self._key = None

    def _session_key(self) -> KeyHandle:
        if self._key is None:
            self._key = self._store.generate_key()
        return self._key

    def __enter__(self) -> "CredentialVault":
        """Enter the session scope.

        Returns
        -------
        CredentialVault
            This vault.
        """
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """Clear the vault when the session scope ends."""
        _ = (exc_type, exc_value, traceback)
        self.clear()

"""Credential vault tests."""

import base64
import json

import pytest

from secure_tts.exceptions import DecryptionError, EncryptionError
from secure_tts.vault import (
    STORAGE_KEY,
    AesGcmSessionStore,
    CredentialVault,
    EncryptedBlob,
)


@pytest.fixture()
def store() -> AesGcmSessionStore:
    """Return an empty session store."""
    return AesGcmSessionStore()


@pytest.fixture()
def vault(store: AesGcmSessionStore, clock) -> CredentialVault:
    """Return a vault with a 30 minute expiry on a fake clock."""
    return CredentialVault(store, ttl_seconds=1800, clock=clock)


class TestCredentialVault:
    """Save, load and clear semantics."""

    @pytest.mark.parametrize(
        "secret",
        ["AIzaSyA-very_secret-key-0123456789abcd", "x", "ユニコード🔑"],
    )
    def test_round_trip(self, vault: CredentialVault, secret: str) -> None:
        """Return exactly what was saved.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.
        secret : str
            Secret to store.

        Returns
        -------
        None
            Asserts the round trip.
        """
        vault.save(secret)
        assert vault.load() == secret

    def test_nothing_stored_returns_none(self, vault: CredentialVault) -> None:
        """Report absence as ``None``.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.

        Returns
        -------
        None
            Asserts the empty state.
        """
        assert vault.load() is None
        assert not vault.has_credential()

    def test_secret_is_not_stored_in_plaintext(
        self, vault: CredentialVault, store: AesGcmSessionStore
    ) -> None:
        """Persist only ciphertext, with a fresh IV per save.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.
        store : AesGcmSessionStore
            Backing store.

        Returns
        -------
        None
            Asserts the at-rest form.
        """
        vault.save("AIzaSecretValue")
        first = store.retrieve(STORAGE_KEY)
        vault.save("AIzaSecretValue")
        second = store.retrieve(STORAGE_KEY)

        assert "AIzaSecretValue" not in first
        first_blob = EncryptedBlob.from_json(first)
        second_blob = EncryptedBlob.from_json(second)
        assert first_blob.iv != second_blob.iv
        assert len(first_blob.iv) == 12

    def test_expiry_clears_and_vault_recovers(
        self, vault: CredentialVault, clock
    ) -> None:
        """Treat an expired credential as absent and keep working afterwards.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.
        clock : FakeClock
            Controllable clock.

        Returns
        -------
        None
            Asserts expiry and recovery.
        """
        vault.save("first-secret")
        clock.advance(1801)

        assert vault.load() is None
        assert not vault.has_credential()

        vault.save("second-secret")
        assert vault.load() == "second-secret"

    def test_not_expired_just_inside_window(self, vault: CredentialVault, clock) -> None:
        """Keep the credential until the window has fully elapsed.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.
        clock : FakeClock
            Controllable clock.

        Returns
        -------
        None
            Asserts the boundary.
        """
        vault.save("secret")
        clock.advance(1799)
        assert vault.load() == "secret"

    def test_key_rotation_invalidates_blobs(self, vault: CredentialVault) -> None:
        """Fail cleanly after the session key is regenerated.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.

        Returns
        -------
        None
            Asserts invalidation without an exception.
        """
        vault.save("secret")
        vault.rotate_key()

        assert vault.load() is None
        assert not vault.has_credential()

        vault.save("fresh")
        assert vault.load() == "fresh"

    def test_blob_from_another_vault_does_not_decrypt(
        self, store: AesGcmSessionStore, clock
    ) -> None:
        """Never decrypt under a different key instance.

        Parameters
        ----------
        store : AesGcmSessionStore
            Shared backing store.
        clock : FakeClock
            Controllable clock.

        Returns
        -------
        None
            Asserts key isolation.
        """
        writer = CredentialVault(store, clock=clock)
        reader = CredentialVault(store, clock=clock)
        writer.save("secret")

        assert reader.load() is None

    def test_corrupted_blob_is_cleared(
        self, vault: CredentialVault, store: AesGcmSessionStore, clock
    ) -> None:
        """Discard corrupted storage instead of raising.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.
        store : AesGcmSessionStore
            Backing store.
        clock : FakeClock
            Controllable clock.

        Returns
        -------
        None
            Asserts cleanup.
        """
        vault.save("secret")
        document = json.loads(store.retrieve(STORAGE_KEY))
        ciphertext = bytearray(base64.b64decode(document["data"]))
        ciphertext[0] ^= 0xFF
        document["data"] = base64.b64encode(bytes(ciphertext)).decode("ascii")
        store.persist(STORAGE_KEY, json.dumps(document))
        assert vault.load() is None
        assert store.retrieve(STORAGE_KEY) is None

        store.persist(STORAGE_KEY, "{not json")
        assert vault.load() is None
        assert store.retrieve(STORAGE_KEY) is None

    def test_clear_is_idempotent(self, vault: CredentialVault) -> None:
        """Allow clearing an empty vault repeatedly.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.

        Returns
        -------
        None
            Asserts idempotence.
        """
        vault.clear()
        vault.save("secret")
        vault.clear()
        vault.clear()
        assert vault.load() is None

    def test_context_exit_clears(self, store: AesGcmSessionStore) -> None:
        """Clear the vault when the session scope ends.

        Parameters
        ----------
        store : AesGcmSessionStore
            Backing store.

        Returns
        -------
        None
            Asserts the session-end hook.
        """
        with CredentialVault(store) as vault:
            vault.save("secret")
            assert vault.has_credential()
        assert store.retrieve(STORAGE_KEY) is None

    @pytest.mark.parametrize("secret", ["", None, 123])
    def test_save_rejects_invalid_secret(self, vault: CredentialVault, secret) -> None:
        """Raise ``EncryptionError`` for unusable input.

        Parameters
        ----------
        vault : CredentialVault
            Vault under test.
        secret : object
            Invalid secret.

        Returns
        -------
        None
            Asserts the error.
        """
        with pytest.raises(EncryptionError):
            vault.save(secret)

    def test_key_handle_hides_material(self, store: AesGcmSessionStore) -> None:
        """Never expose key bytes through the handle's repr.

        Parameters
        ----------
        store : AesGcmSessionStore
            Backing store.

        Returns
        -------
        None
            Asserts redaction.
        """
        assert repr(store.generate_key()) == "KeyHandle(<redacted>)"

    def test_foreign_key_handle_is_rejected(self) -> None:
        """Refuse to decrypt with a handle from another store.

        Returns
        -------
        None
            Asserts ownership checks.
        """
        first = AesGcmSessionStore()
        second = AesGcmSessionStore()
        key = first.generate_key()
        ciphertext, iv = first.encrypt(key, b"secret")

        with pytest.raises(DecryptionError):
            second.decrypt(key, ciphertext, iv)

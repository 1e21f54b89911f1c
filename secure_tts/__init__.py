"""Client-side security pipeline for the Secure TTS service."""

from secure_tts.client import SecureTTSClient
from secure_tts.exceptions import (
    CredentialError,
    DecryptionError,
    EncryptionError,
    SecureTTSAPIError,
    SecureTTSCSRFError,
    SecureTTSError,
    SecureTTSPermissionError,
    SecureTTSRateLimitError,
    SecureTTSUnavailableError,
    SecureTTSValidationError,
)
from secure_tts.ratelimit import SlidingWindowRateLimiter
from secure_tts.sanitizer import sanitize_text, validate_credential_format
from secure_tts.types import CredentialCheck, CSRFTokenGrant, SynthesisResult
from secure_tts.vault import (
    AesGcmSessionStore,
    CredentialVault,
    EncryptedBlob,
    SecretStore,
)

__all__ = [
    "AesGcmSessionStore",
    "CSRFTokenGrant",
    "CredentialCheck",
    "CredentialError",
    "CredentialVault",
    "DecryptionError",
    "EncryptedBlob",
    "EncryptionError",
    "SecretStore",
    "SecureTTSAPIError",
    "SecureTTSCSRFError",
    "SecureTTSClient",
    "SecureTTSError",
    "SecureTTSPermissionError",
    "SecureTTSRateLimitError",
    "SecureTTSUnavailableError",
    "SecureTTSValidationError",
    "SlidingWindowRateLimiter",
    "sanitize_text",
    "validate_credential_format",
]

"""SDK value types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class CredentialCheck:
    """Result of a credential format check.

    Attributes
    ----------
    valid : bool
        Whether the credential passed every check.
    error : str | None
        User-facing reason for the first failed check.
    """

    valid: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class CSRFTokenGrant:
    """Anti-forgery token issued by the server.

    Attributes
    ----------
    token : str
        Opaque one-time token.
    session_id : str
        Session the token is bound to.
    expires_at : datetime
        Token deadline.
    """

    token: str
    session_id: str
    expires_at: datetime

    @property
    def expired(self) -> bool:
        """Return whether the token deadline has passed.

        Returns
        -------
        bool
            ``True`` once the server would reject the token as expired.
        """
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires_at


@dataclass(frozen=True, slots=True)
class SynthesisResult:
    """Synthesized audio returned by the server.

    Attributes
    ----------
    audio : bytes
        Encoded audio payload.
    content_type : str
        Payload media type.
    voice : str
        Voice that was requested.
    speed : float
        Speaking rate that was requested.
    """

    audio: bytes
    content_type: str
    voice: str
    speed: float

    def save(self, path) -> None:
        """Write the audio payload to disk.

        Parameters
        ----------
        path : str | os.PathLike[str]
            Destination file.

        Returns
        -------
        None
            Writes the file.
        """
        with open(path, "wb") as handle:
            handle.write(self.audio)

"""Exception hierarchy for voicelink.

Every application error carries the HTTP status the web layer answers with,
so endpoints can convert failures into responses in one place.
"""
from __future__ import annotations


class VoiceLinkError(Exception):
    """Base exception for all voicelink errors."""

    status_code = 500

    def __init__(self, message: str = "Unknown error") -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(VoiceLinkError):
    """A required setting (e.g. the transcription credential) is missing."""


class UpstreamError(VoiceLinkError):
    """The transcription service failed or answered with an unusable body.

    ``upstream_status`` and ``body`` are set when the service returned a
    non-success HTTP response; both are ``None`` for malformed bodies and
    transport failures.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = status_code
        self.body = body

    @classmethod
    def from_response(cls, status_code: int, body: str) -> UpstreamError:
        return cls(
            f"Transcription API error: {status_code} - {body}",
            status_code=status_code,
            body=body,
        )


class NotFoundError(VoiceLinkError):
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found")
        self.session_id = session_id


class SessionStateError(VoiceLinkError):
    """Raised on a status transition that is not strictly forward."""

    status_code = 409


class AudioFormatError(VoiceLinkError):
    """Uploaded audio is not a mono 16-bit PCM WAV payload."""

    status_code = 400


class ProtocolError(VoiceLinkError):
    """JSON-RPC level failure, rendered as an ``error`` envelope."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602

    status_code = 400

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

"""Custom exceptions for pitchcoach."""


class PitchCoachError(Exception):
    """Base exception for pitchcoach."""

    code: str = "E_UNKNOWN"


class ParseError(PitchCoachError):
    """Failed to parse a score file."""

    def __init__(self, message: str, file_type: str = "unknown") -> None:
        super().__init__(message)
        self.code = f"E_{file_type.upper()}_PARSE"


class ConfigError(PitchCoachError):
    """Configuration file is missing required structure or has invalid values."""

    code = "E_CONFIG"


class CaptureError(PitchCoachError):
    """Audio input could not be opened or started."""

    code = "E_CAPTURE"


class SessionStateError(PitchCoachError):
    """A practice session record was used in an impossible way."""

    code = "E_SESSION_STATE"


class ValidationError(PitchCoachError):
    """Report failed schema validation."""

    code = "E_VALIDATION"

"""Exceptions for keysounds-engine."""


class KeysoundsError(Exception):
    """Base exception for engine errors."""

    pass


class InvalidPatternError(KeysoundsError):
    """Application path pattern is empty or malformed."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid application pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class DuplicateKeyError(KeysoundsError):
    """A rule for the application path already exists."""

    pass


class RuleNotFoundError(KeysoundsError):
    """No rule exists for the application path."""

    pass


class ConfigValidationError(KeysoundsError):
    """Error validating configuration data."""

    pass


class PersistenceFailure(KeysoundsError):
    """Error reading or writing persisted state."""

    pass

"""Data models for keysounds-engine."""

from dataclasses import dataclass
from enum import Enum

from .exceptions import ConfigValidationError


class Device(Enum):
    """Input device a sound profile or effect applies to."""

    KEYBOARD = "keyboard"
    MOUSE = "mouse"

    @property
    def other(self) -> "Device":
        """The linked device when volumes are locked."""
        return Device.MOUSE if self is Device.KEYBOARD else Device.KEYBOARD


# Strings older rule files used to mean "no profile".
_ABSENT_PROFILE_SENTINELS = ("", "None", "none")


def normalize_profile(value: object) -> str | None:
    """Convert a persisted profile reference to ``str | None``.

    ``None`` is the only representation of explicit silence. Legacy string
    sentinels are folded into it.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigValidationError(f"Profile reference must be a string, got {type(value).__name__}")
    if value.strip() in _ABSENT_PROFILE_SENTINELS:
        return None
    return value


@dataclass(frozen=True)
class Rule:
    """Per-application profile override.

    Attributes:
        app_path: Literal executable path or glob pattern (unique key)
        keyboard_profile: Keyboard profile, or None for no keyboard sound
        mouse_profile: Mouse profile, or None for no mouse sound
        enabled: Disabled rules never match
    """

    app_path: str
    keyboard_profile: str | None = None
    mouse_profile: str | None = None
    enabled: bool = True

    def profile_for(self, device: Device) -> str | None:
        """Profile this rule assigns to ``device``."""
        return self.keyboard_profile if device is Device.KEYBOARD else self.mouse_profile


@dataclass(frozen=True)
class DefaultRule:
    """Fallback profiles used when no rule matches. Always enabled."""

    keyboard_profile: str | None = "mx-brown"
    mouse_profile: str | None = "g502x-wireless"

    def profile_for(self, device: Device) -> str | None:
        """Default profile for ``device``."""
        return self.keyboard_profile if device is Device.KEYBOARD else self.mouse_profile


@dataclass(frozen=True)
class ProfilesDiff:
    """Which devices need their profile reloaded after a switch."""

    update_keyboard: bool = False
    update_mouse: bool = False

    @property
    def changed(self) -> bool:
        """True when at least one device needs a reload."""
        return self.update_keyboard or self.update_mouse


@dataclass(frozen=True)
class ResolvedProfiles:
    """Profiles active for the foreground application.

    Attributes:
        keyboard: Keyboard profile, or None for silence
        mouse: Mouse profile, or None for silence
        is_default: True when the default rule supplied the profiles
    """

    keyboard: str | None
    mouse: str | None
    is_default: bool = False

    def diff(self, new: "ResolvedProfiles") -> ProfilesDiff:
        """Compare against the profiles about to become active."""
        return ProfilesDiff(
            update_keyboard=self.keyboard != new.keyboard,
            update_mouse=self.mouse != new.mouse,
        )

"""Known sound profile identifiers per device type."""

import logging
from collections.abc import Callable
from collections.abc import Iterable

from .models import Device

logger = logging.getLogger(__name__)

LibraryLookup = Callable[[Device], Iterable[str]]


class ProfileRegistry:
    """Membership lookup for profile identifiers.

    Profile contents (sound assets) belong to the external library; the
    registry only knows which identifiers exist for each device.
    """

    def __init__(self, keyboard: Iterable[str] = (), mouse: Iterable[str] = ()):
        self._profiles: dict[Device, tuple[str, ...]] = {
            Device.KEYBOARD: tuple(dict.fromkeys(keyboard)),
            Device.MOUSE: tuple(dict.fromkeys(mouse)),
        }

    @classmethod
    def from_library(cls, lookup: LibraryLookup) -> "ProfileRegistry":
        """Create a registry filled from the profile library.

        Args:
            lookup: Returns the installed profile identifiers for a device

        Returns:
            Registry holding every device's identifiers
        """
        registry = cls()
        registry.refresh(lookup)
        return registry

    def refresh(self, lookup: LibraryLookup) -> None:
        """Replace every device's identifiers with the library's current list."""
        for device in Device:
            self.replace(device, lookup(device))

    def replace(self, device: Device, profiles: Iterable[str]) -> None:
        """Set the identifiers for one device. Duplicates are dropped, order kept.

        Args:
            device: Device the profiles belong to
            profiles: Installed profile identifiers
        """
        self._profiles[device] = tuple(dict.fromkeys(profiles))
        logger.debug(f"Registered {len(self._profiles[device])} {device.value} profiles")

    def list(self, device: Device) -> tuple[str, ...]:
        """Known identifiers for ``device`` in library order."""
        return self._profiles[device]

    def is_loaded(self, device: Device) -> bool:
        """True once the library has reported at least one profile for ``device``."""
        return bool(self._profiles[device])

    def contains(self, device: Device, profile: str) -> bool:
        """Check whether ``profile`` is a known identifier for ``device``."""
        return profile in self._profiles[device]

"""Runtime volume, mute and lock state for keyboard and mouse sounds."""

import logging
import math
import threading
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from typing import Any

from .exceptions import ConfigValidationError
from .models import Device

logger = logging.getLogger(__name__)

VOLUME_MIN, VOLUME_MAX = 0, 100


def clamp_volume(value: float) -> int:
    """Clamp to 0-100 and round to whole points.

    Raises:
        ConfigValidationError: If ``value`` is NaN
    """
    if math.isnan(value):
        raise ConfigValidationError("Volume must not be NaN")
    clamped = int(round(max(VOLUME_MIN, min(VOLUME_MAX, value))))
    if clamped != value:
        logger.debug(f"Clamped volume {value} to {clamped}")
    return clamped


@dataclass(frozen=True)
class DeviceLevel:
    """Volume and mute flag for one device.

    Muting keeps ``volume`` so it can be restored on unmute.
    """

    volume: int = 100
    muted: bool = False

    @property
    def effective_volume(self) -> int:
        return 0 if self.muted else self.volume

    def with_volume(self, value: float) -> "DeviceLevel":
        volume = clamp_volume(value)
        # A positive volume unmutes; zero leaves the mute bit alone.
        muted = self.muted and volume == 0
        return DeviceLevel(volume=volume, muted=muted)

    def with_muted(self, muted: bool) -> "DeviceLevel":
        return replace(self, muted=muted)


@dataclass(frozen=True)
class VolumeSnapshot:
    """Immutable view of both devices' levels and the lock flag.

    Attributes:
        keyboard: Keyboard level
        mouse: Mouse level
        locked: Whether changes to one device are mirrored to the other
    """

    keyboard: DeviceLevel = field(default_factory=DeviceLevel)
    mouse: DeviceLevel = field(default_factory=DeviceLevel)
    locked: bool = False

    def level(self, device: Device) -> DeviceLevel:
        """Level for ``device``."""
        return self.keyboard if device is Device.KEYBOARD else self.mouse

    @property
    def keyboard_volume(self) -> int:
        return self.keyboard.volume

    @property
    def mouse_volume(self) -> int:
        return self.mouse.volume

    @property
    def keyboard_muted(self) -> bool:
        return self.keyboard.muted

    @property
    def mouse_muted(self) -> bool:
        return self.mouse.muted


VolumeListener = Callable[[VolumeSnapshot], None]
LevelChange = Callable[[DeviceLevel], DeviceLevel]


class VolumeManager:
    """Owns the volume state; every change is one atomic transition.

    When locked, a change computed for the first targeted device is applied
    to both devices in the same transition, so readers never observe one
    device updated and the other not.
    """

    def __init__(self, state: VolumeSnapshot | None = None):
        self._state = state or VolumeSnapshot()
        self._lock = threading.RLock()
        self._listeners: list[VolumeListener] = []

    def get_state(self) -> VolumeSnapshot:
        with self._lock:
            return self._state

    def subscribe(self, listener: VolumeListener) -> Callable[[], None]:
        """Register a listener for new snapshots. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # ===== Mutations =====

    def set_volume(self, device: Device, value: float) -> VolumeSnapshot:
        """Set one device's volume.

        Args:
            device: Device to change (both when locked)
            value: New volume, clamped to 0-100

        Returns:
            The new snapshot

        Raises:
            ConfigValidationError: If ``value`` is NaN; the state is unchanged
        """
        return self._transition([device], lambda base: lambda level: level.with_volume(value))

    def set_muted(self, device: Device, muted: bool) -> VolumeSnapshot:
        return self.set_muted_many([device], muted)

    def set_muted_many(self, devices: Iterable[Device], muted: bool) -> VolumeSnapshot:
        return self._transition(devices, lambda base: lambda level: level.with_muted(muted))

    def toggle_muted(self, devices: Iterable[Device]) -> VolumeSnapshot:
        return self._transition(devices, lambda base: lambda level: level.with_muted(not base.muted))

    def adjust_volume(self, devices: Iterable[Device], delta: float) -> VolumeSnapshot:
        """Step the volume of ``devices`` by ``delta`` points, clamped to 0-100."""
        return self._transition(devices, lambda base: lambda level: level.with_volume(base.volume + delta))

    def set_locked(self, locked: bool) -> VolumeSnapshot:
        with self._lock:
            self._state = replace(self._state, locked=locked)
            logger.info(f"Volumes {'locked' if locked else 'unlocked'}")
            self._notify()
            return self._state

    def replace_state(self, state: VolumeSnapshot) -> None:
        """Adopt state read from storage."""
        with self._lock:
            self._state = state
            self._notify()

    # ===== Records =====

    def to_record(self) -> dict[str, Any]:
        state = self.get_state()
        record: dict[str, Any] = {
            device.value: {"volume": state.level(device).volume, "muted": state.level(device).muted}
            for device in Device
        }
        record["locked"] = state.locked
        return record

    @classmethod
    def from_record(cls, record: Any) -> "VolumeManager":
        """Build a manager from a persisted record.

        Raises:
            ConfigValidationError: If the record does not have the volume shape
        """
        return cls(cls.state_from_record(record))

    @staticmethod
    def state_from_record(record: Any) -> VolumeSnapshot:
        if not isinstance(record, dict):
            raise ConfigValidationError("Volume record must be a mapping")
        levels = {}
        for device in Device:
            entry = record.get(device.value) or {}
            if not isinstance(entry, dict):
                raise ConfigValidationError(f"Volume for {device.value} must be a mapping")
            volume = entry.get("volume", VOLUME_MAX)
            if isinstance(volume, bool) or not isinstance(volume, (int, float)):
                raise ConfigValidationError(f"Volume for {device.value} must be a number")
            levels[device] = DeviceLevel(volume=clamp_volume(volume), muted=bool(entry.get("muted", False)))
        return VolumeSnapshot(
            keyboard=levels[Device.KEYBOARD],
            mouse=levels[Device.MOUSE],
            locked=bool(record.get("locked", False)),
        )

    # ===== Private Helpers =====

    def _transition(self, devices: Iterable[Device], plan: Callable[[DeviceLevel], LevelChange]) -> VolumeSnapshot:
        """Apply one atomic change.

        ``plan`` receives the level the new value is computed from and returns
        the change to apply. When locked, the change planned from the first
        target is applied to both devices.
        """
        targets = list(dict.fromkeys(devices))
        if not targets:
            return self.get_state()

        with self._lock:
            state = self._state
            levels = {device: state.level(device) for device in Device}
            if state.locked:
                change = plan(levels[targets[0]])
                levels = {device: change(level) for device, level in levels.items()}
            else:
                for device in targets:
                    levels[device] = plan(levels[device])(levels[device])

            self._state = VolumeSnapshot(
                keyboard=levels[Device.KEYBOARD],
                mouse=levels[Device.MOUSE],
                locked=state.locked,
            )
            self._notify()
            return self._state

    def _notify(self) -> None:
        # Called with the lock held so listeners see snapshots in transition order.
        # The transition is already committed, so a failing listener is logged
        # and the remaining listeners still run.
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception(f"Volume listener {listener!r} failed")

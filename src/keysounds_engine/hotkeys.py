"""Hotkey bindings and dispatch of device actions."""

import logging
import math
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from typing import ClassVar

from .debounce import DebouncedWriter
from .exceptions import ConfigValidationError
from .models import Device
from .storage import Section
from .volume import VolumeManager

logger = logging.getLogger(__name__)


class ModifierKey(Enum):
    LEFT_CONTROL = "LeftControl"
    RIGHT_CONTROL = "RightControl"
    LEFT_SHIFT = "LeftShift"
    RIGHT_SHIFT = "RightShift"
    LEFT_ALT = "LeftAlt"
    RIGHT_ALT = "RightAlt"
    LEFT_WIN = "LeftWin"
    RIGHT_WIN = "RightWin"


class TargetDevice(Enum):
    ALL = "all"
    KEYBOARD = "keyboard"
    MOUSE = "mouse"
    NONE = "none"

    @property
    def devices(self) -> tuple[Device, ...]:
        return {
            TargetDevice.ALL: (Device.KEYBOARD, Device.MOUSE),
            TargetDevice.KEYBOARD: (Device.KEYBOARD,),
            TargetDevice.MOUSE: (Device.MOUSE,),
            TargetDevice.NONE: (),
        }[self]


# ===== Device actions =====


@dataclass(frozen=True)
class _DeviceTargetAction:
    """Action applied to the volume state of one or both devices."""

    kind: ClassVar[str]
    target: TargetDevice = TargetDevice.ALL

    def __post_init__(self):
        if self.target is TargetDevice.NONE:
            raise ConfigValidationError(f"'{self.kind}' needs a device target")


@dataclass(frozen=True)
class Mute(_DeviceTargetAction):
    kind: ClassVar[str] = "mute"


@dataclass(frozen=True)
class Unmute(_DeviceTargetAction):
    kind: ClassVar[str] = "unmute"


@dataclass(frozen=True)
class ToggleMute(_DeviceTargetAction):
    kind: ClassVar[str] = "toggle-mute"


@dataclass(frozen=True)
class _VolumeStepAction(_DeviceTargetAction):
    """Volume step; ``value`` is a fraction of full scale in ``[0, 1]``."""

    value: float = 0.1

    def __post_init__(self):
        super().__post_init__()
        value = float(self.value)
        if math.isnan(value):
            raise ConfigValidationError(f"{self.kind} value must not be NaN")
        clamped = max(0.0, min(1.0, value))
        if clamped != self.value:
            logger.debug(f"Clamped {self.kind} value {self.value} to {clamped}")
        object.__setattr__(self, "value", clamped)

    @property
    def points(self) -> int:
        return round(self.value * 100)


@dataclass(frozen=True)
class IncreaseVolume(_VolumeStepAction):
    kind: ClassVar[str] = "increase-volume"


@dataclass(frozen=True)
class DecreaseVolume(_VolumeStepAction):
    kind: ClassVar[str] = "decrease-volume"


@dataclass(frozen=True)
class ToggleOSKHelpers:
    """Show or hide the on-screen key overlay. Not tied to any device."""

    kind: ClassVar[str] = "toggle-osk-helpers"

    @property
    def target(self) -> TargetDevice:
        return TargetDevice.NONE


DeviceAction = Mute | Unmute | ToggleMute | IncreaseVolume | DecreaseVolume | ToggleOSKHelpers

_ACTION_TYPES: dict[str, type] = {
    cls.kind: cls for cls in (Mute, Unmute, ToggleMute, IncreaseVolume, DecreaseVolume, ToggleOSKHelpers)
}


def action_to_record(action: DeviceAction) -> dict[str, Any]:
    record: dict[str, Any] = {"kind": action.kind, "target": action.target.value}
    if isinstance(action, _VolumeStepAction):
        record["value"] = action.value
    return record


def action_from_record(record: Any) -> DeviceAction:
    """Parse an action record.

    Also accepts the older ``{action, device, value}`` layout with a string
    value.

    Raises:
        ConfigValidationError: If the kind, target or value is invalid
    """
    if not isinstance(record, dict):
        raise ConfigValidationError(f"Hotkey action must be a mapping, got {record!r}")

    kind = record.get("kind", record.get("action"))
    action_type = _ACTION_TYPES.get(kind)
    if action_type is None:
        raise ConfigValidationError(f"Unknown hotkey action: {kind!r}")
    if action_type is ToggleOSKHelpers:
        return ToggleOSKHelpers()

    target_name = record.get("target", record.get("device", TargetDevice.ALL.value))
    try:
        target = TargetDevice(target_name)
    except ValueError:
        raise ConfigValidationError(f"Unknown hotkey target: {target_name!r}") from None

    if issubclass(action_type, _VolumeStepAction):
        raw = record.get("value", 0.1)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"Invalid volume step {raw!r}") from None
        return action_type(target=target, value=value)

    return action_type(target=target)


# ===== Groups =====


@dataclass(frozen=True)
class HotKey:
    key: str
    action: DeviceAction


@dataclass(frozen=True)
class HotkeyGroup:
    """Keys that trigger actions while exactly ``modifiers`` are held."""

    modifiers: frozenset[ModifierKey] = frozenset()
    keys: tuple[HotKey, ...] = ()

    def find(self, key: str) -> HotKey | None:
        for hotkey in self.keys:
            if hotkey.key == key:
                return hotkey
        return None


def parse_modifiers(names: Iterable[str | ModifierKey]) -> frozenset[ModifierKey]:
    """Raises ConfigValidationError on an unknown modifier name."""
    modifiers = set()
    for name in names:
        try:
            modifiers.add(ModifierKey(name))
        except ValueError:
            raise ConfigValidationError(f"Unknown modifier key: {name!r}") from None
    return frozenset(modifiers)


def group_to_record(group: HotkeyGroup) -> dict[str, Any]:
    return {
        "modifiers": [modifier.value for modifier in ModifierKey if modifier in group.modifiers],
        "keys": [{"key": hotkey.key, "action": action_to_record(hotkey.action)} for hotkey in group.keys],
    }


def group_from_record(record: Any) -> HotkeyGroup:
    if not isinstance(record, dict):
        raise ConfigValidationError(f"Hotkey group must be a mapping, got {record!r}")
    keys = []
    for entry in record.get("keys") or []:
        if not isinstance(entry, dict) or not isinstance(entry.get("key"), str):
            raise ConfigValidationError(f"Malformed hotkey: {entry!r}")
        keys.append(HotKey(key=entry["key"], action=action_from_record(entry.get("action"))))
    return HotkeyGroup(modifiers=parse_modifiers(record.get("modifiers") or []), keys=tuple(keys))


def default_hotkeys() -> list[HotkeyGroup]:
    return [
        HotkeyGroup(
            modifiers=frozenset({ModifierKey.LEFT_CONTROL, ModifierKey.LEFT_SHIFT, ModifierKey.LEFT_ALT}),
            keys=(
                HotKey(key="M", action=Mute(TargetDevice.ALL)),
                HotKey(key="U", action=Unmute(TargetDevice.ALL)),
                HotKey(key="Up", action=IncreaseVolume(TargetDevice.ALL, 0.1)),
                HotKey(key="Down", action=DecreaseVolume(TargetDevice.ALL, 0.1)),
            ),
        )
    ]


# ===== Dispatcher =====

HotkeyListener = Callable[[HotkeyGroup, HotKey], None]


class HotkeyDispatcher:
    """Matches key presses against hotkey groups and applies their actions.

    Edits take effect immediately and are persisted through a debounced
    writer, so a burst of edits produces one write of the final state.
    Loading never schedules a write.

    Args:
        volume: Volume state that device actions mutate
        writer: Debounced persistence for the hotkeys section
        on_toggle_osk_helpers: Overlay collaborator for ToggleOSKHelpers
    """

    def __init__(
        self,
        volume: VolumeManager,
        writer: DebouncedWriter | None = None,
        on_toggle_osk_helpers: Callable[[], None] | None = None,
    ):
        self.volume = volume
        self.writer = writer
        self.on_toggle_osk_helpers = on_toggle_osk_helpers
        self._groups: list[HotkeyGroup] = default_hotkeys()
        self._listeners: list[HotkeyListener] = []

    # ===== Configuration =====

    def groups(self) -> tuple[HotkeyGroup, ...]:
        return tuple(self._groups)

    def load(self, groups: Iterable[HotkeyGroup]) -> None:
        """Adopt persisted groups without writing them back."""
        self._groups = list(groups)
        logger.info(f"Loaded {len(self._groups)} hotkey groups")

    def register(self, group: HotkeyGroup) -> int:
        """Append a group. Returns its index."""
        self._groups.append(group)
        self._schedule_save()
        return len(self._groups) - 1

    def unregister(self, index: int) -> HotkeyGroup:
        try:
            group = self._groups.pop(index)
        except IndexError:
            raise ConfigValidationError(f"No hotkey group at index {index}") from None
        self._schedule_save()
        return group

    def update(self, index: int, group: HotkeyGroup) -> None:
        if not -len(self._groups) <= index < len(self._groups):
            raise ConfigValidationError(f"No hotkey group at index {index}")
        self._groups[index] = group
        self._schedule_save()

    def replace(self, groups: Iterable[HotkeyGroup]) -> None:
        self._groups = list(groups)
        self._schedule_save()

    def subscribe(self, listener: HotkeyListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def to_record(self) -> list[dict[str, Any]]:
        return [group_to_record(group) for group in self._groups]

    @staticmethod
    def groups_from_record(record: Any) -> list[HotkeyGroup]:
        if not isinstance(record, list):
            raise ConfigValidationError("Hotkeys record must be a list")
        return [group_from_record(entry) for entry in record]

    # ===== Dispatch =====

    def dispatch(self, pressed_modifiers: Iterable[str | ModifierKey], key: str) -> DeviceAction | None:
        """Run the action bound to ``key`` under exactly ``pressed_modifiers``.

        Returns:
            The action that ran, or None when nothing is bound
        """
        try:
            pressed = parse_modifiers(pressed_modifiers)
        except ConfigValidationError as e:
            logger.debug(f"No hotkey match: {e}")
            return None

        for group in self._groups:
            if group.modifiers != pressed:
                continue
            hotkey = group.find(key)
            if hotkey is None:
                continue
            self._apply(hotkey.action)
            logger.info(f"Hotkey processed: {hotkey.key} -> {action_to_record(hotkey.action)}")
            for listener in list(self._listeners):
                listener(group, hotkey)
            return hotkey.action

        return None

    def _apply(self, action: DeviceAction) -> None:
        if isinstance(action, ToggleOSKHelpers):
            if self.on_toggle_osk_helpers is None:
                logger.warning("No on-screen key helper overlay registered")
                return
            self.on_toggle_osk_helpers()
            return

        devices = action.target.devices
        if isinstance(action, Mute):
            self.volume.set_muted_many(devices, True)
        elif isinstance(action, Unmute):
            self.volume.set_muted_many(devices, False)
        elif isinstance(action, ToggleMute):
            self.volume.toggle_muted(devices)
        elif isinstance(action, IncreaseVolume):
            self.volume.adjust_volume(devices, action.points)
        elif isinstance(action, DecreaseVolume):
            self.volume.adjust_volume(devices, -action.points)

    def _schedule_save(self) -> None:
        if self.writer is not None:
            self.writer.schedule(Section.HOTKEYS, self.to_record())

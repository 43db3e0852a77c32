"""Application context wiring the stores, dispatcher and persistence together."""

import logging
import time
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .commands import Command
from .commands import CommandRunner
from .commands import RemoveRuleCommand
from .commands import SetDefaultProfilesCommand
from .commands import SetRuleEnabledCommand
from .commands import UpsertRuleCommand
from .debounce import Clock
from .debounce import DebouncedWriter
from .debounce import Debouncer
from .effects import EffectConfig
from .effects import EffectsConfigStore
from .exceptions import ConfigValidationError
from .hotkeys import DeviceAction
from .hotkeys import HotkeyDispatcher
from .hotkeys import HotkeyGroup
from .hotkeys import ModifierKey
from .models import Device
from .models import ProfilesDiff
from .models import ResolvedProfiles
from .models import Rule
from .profiles import LibraryLookup
from .profiles import ProfileRegistry
from .resolver import RuleResolver
from .rules import PatternValidator
from .rules import RuleStore
from .rules import validate_pattern
from .storage import Section
from .storage import StoragePaths
from .storage import YamlStorage
from .volume import VolumeManager
from .volume import VolumeSnapshot

logger = logging.getLogger(__name__)

StateListener = Callable[[Section], None]


@dataclass(frozen=True)
class EngineSettings:
    """Engine configuration injected by the application.

    Attributes:
        paths: Where persisted state lives
        hotkey_debounce: Quiet seconds before hotkey edits are written
        effects_debounce: Quiet seconds before effect edits are written
        volume_debounce: Quiet seconds before volume changes are written
        validation_debounce: Quiet seconds before a typed pattern is validated
    """

    paths: StoragePaths
    hotkey_debounce: float = 0.5
    effects_debounce: float = 0.5
    volume_debounce: float = 0.5
    validation_debounce: float = 0.3


class EngineContext:
    """Owns every store for one process.

    Construct once at startup, call ``start()`` to load persisted state,
    drive ``tick()`` from the host event loop and call ``shutdown()`` (or use
    the context as a ``with`` block) to flush pending writes.

    Args:
        settings: Paths and debounce intervals
        library: Lists the profiles installed for a device
        on_toggle_osk_helpers: Overlay collaborator for the hotkey action
        on_pattern_validated: Receives debounced ``(pattern, is_valid)`` results
        clock: Monotonic time source shared by every debouncer
    """

    def __init__(
        self,
        settings: EngineSettings,
        library: LibraryLookup | None = None,
        on_toggle_osk_helpers: Callable[[], None] | None = None,
        on_pattern_validated: Callable[[str, bool], None] | None = None,
        clock: Clock = time.monotonic,
    ):
        self.settings = settings
        self.library = library
        self.storage = YamlStorage(settings.paths)

        self._hotkey_writer = DebouncedWriter(self.storage, settings.hotkey_debounce, clock)
        self._effects_writer = DebouncedWriter(self.storage, settings.effects_debounce, clock)
        self._volume_writer = DebouncedWriter(self.storage, settings.volume_debounce, clock)
        self._validation = Debouncer(settings.validation_debounce, clock)

        self.registry = ProfileRegistry()
        self.rules = RuleStore()
        self.resolver = RuleResolver(self.rules, self.registry)
        self.effects = EffectsConfigStore()
        self.volume = VolumeManager()
        self.hotkeys = HotkeyDispatcher(self.volume, self._hotkey_writer, on_toggle_osk_helpers)
        self.pattern_validator = PatternValidator(self._validation, on_pattern_validated or (lambda p, ok: None))
        self._runner = CommandRunner(self._save_rules)
        self._listeners: list[StateListener] = []

        self.volume.subscribe(self._on_volume_changed)

    # ===== Lifecycle =====

    def start(self) -> None:
        """Load all persisted state. Loading never writes anything back."""
        self._load_all()
        logger.info("Engine started")

    def shutdown(self) -> None:
        """Flush pending writes."""
        for writer in (self._hotkey_writer, self._effects_writer, self._volume_writer):
            writer.flush()
        self._validation.cancel("pattern")
        logger.info("Engine shut down")

    def __enter__(self) -> "EngineContext":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def tick(self, now: float | None = None) -> None:
        """Run debounced work that has become due."""
        for writer in (self._hotkey_writer, self._effects_writer, self._volume_writer):
            writer.poll(now)
        self._validation.poll(now)

    def on_external_state_changed(self) -> None:
        """Re-read all state after another process or session changed it.

        Pending local writes are dropped; the stored state supersedes them.
        """
        logger.debug("External state change; re-reading all sections")
        self._hotkey_writer.cancel(Section.HOTKEYS)
        self._effects_writer.cancel(Section.EFFECTS)
        self._volume_writer.cancel(Section.VOLUME)
        self._load_all()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener told which section changed; it should re-read that section."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # ===== Profiles =====

    def refresh_profiles(self) -> None:
        if self.library is not None:
            self.registry.refresh(self.library)

    def resolve(self, path: str | None) -> ResolvedProfiles:
        return self.resolver.resolve(path)

    def switch_foreground(self, path: str | None) -> ProfilesDiff:
        return self.resolver.switch(path)

    # ===== Rules =====

    def add_rule(self, rule: Rule) -> None:
        self._run_rule_command(UpsertRuleCommand(self.rules, rule, create=True))

    def update_rule(self, rule: Rule) -> None:
        self._run_rule_command(UpsertRuleCommand(self.rules, rule))

    def remove_rule(self, app_path: str) -> None:
        self._run_rule_command(RemoveRuleCommand(self.rules, app_path))

    def set_rule_enabled(self, app_path: str, enabled: bool) -> None:
        self._run_rule_command(SetRuleEnabledCommand(self.rules, app_path, enabled))

    def toggle_rule(self, app_path: str) -> None:
        self._run_rule_command(SetRuleEnabledCommand(self.rules, app_path))

    def set_default_profiles(self, keyboard: str | None, mouse: str | None) -> None:
        self._run_rule_command(SetDefaultProfilesCommand(self.rules, keyboard, mouse))

    def validate_pattern(self, pattern: str) -> bool:
        return validate_pattern(pattern)

    def request_pattern_validation(self, pattern: str) -> None:
        self.pattern_validator.request(pattern)

    # ===== Effects =====

    def get_effects(self, device: Device) -> EffectConfig:
        return self.effects.get(device)

    def set_effects(self, device: Device, partial: dict[str, Any]) -> EffectConfig:
        config = self.effects.set(device, partial)
        self._effects_writer.schedule(Section.EFFECTS, self.effects.to_record())
        self._notify(Section.EFFECTS)
        return config

    # ===== Volume =====

    def get_volume_state(self) -> VolumeSnapshot:
        return self.volume.get_state()

    def set_volume(self, device: Device, value: float) -> VolumeSnapshot:
        return self.volume.set_volume(device, value)

    def set_muted(self, device: Device, muted: bool) -> VolumeSnapshot:
        return self.volume.set_muted(device, muted)

    def toggle_muted(self, device: Device) -> VolumeSnapshot:
        return self.volume.toggle_muted([device])

    def set_locked(self, locked: bool) -> VolumeSnapshot:
        return self.volume.set_locked(locked)

    # ===== Hotkeys =====

    def dispatch_hotkey(self, modifiers: Iterable[str | ModifierKey], key: str) -> DeviceAction | None:
        return self.hotkeys.dispatch(modifiers, key)

    def register_hotkey_group(self, group: HotkeyGroup) -> int:
        index = self.hotkeys.register(group)
        self._notify(Section.HOTKEYS)
        return index

    def unregister_hotkey_group(self, index: int) -> HotkeyGroup:
        group = self.hotkeys.unregister(index)
        self._notify(Section.HOTKEYS)
        return group

    def update_hotkey_group(self, index: int, group: HotkeyGroup) -> None:
        self.hotkeys.update(index, group)
        self._notify(Section.HOTKEYS)

    # ===== Private Helpers =====

    def _run_rule_command(self, command: Command) -> None:
        self._runner.execute(command)
        self._notify(Section.RULES)

    def _save_rules(self) -> None:
        self.storage.write(Section.RULES, self.rules.to_record())

    def _load_all(self) -> None:
        self.refresh_profiles()
        self._load_section(Section.RULES, self._adopt_rules)
        self._load_section(Section.EFFECTS, self._adopt_effects)
        self._load_section(Section.HOTKEYS, self._adopt_hotkeys)
        self._load_section(Section.VOLUME, self._adopt_volume)
        # Volume listeners scheduled a write while adopting stored state.
        self._volume_writer.cancel(Section.VOLUME)
        for section in Section:
            self._notify(section)

    def _load_section(self, section: Section, adopt: Callable[[Any], None]) -> None:
        record = self.storage.read(section)
        if record is None:
            logger.debug(f"No stored {section.value}; keeping current values")
            return
        try:
            adopt(record)
        except ConfigValidationError as e:
            logger.warning(f"Ignoring stored {section.value}: {e}")

    def _adopt_rules(self, record: Any) -> None:
        self.rules.restore(RuleStore.from_record(record).snapshot())

    def _adopt_effects(self, record: Any) -> None:
        self.effects = EffectsConfigStore.from_record(record)

    def _adopt_hotkeys(self, record: Any) -> None:
        self.hotkeys.load(HotkeyDispatcher.groups_from_record(record))

    def _adopt_volume(self, record: Any) -> None:
        self.volume.replace_state(VolumeManager.state_from_record(record))

    def _on_volume_changed(self, state: VolumeSnapshot) -> None:
        self._volume_writer.schedule(Section.VOLUME, self.volume.to_record())
        self._notify(Section.VOLUME)

    def _notify(self, section: Section) -> None:
        for listener in list(self._listeners):
            listener(section)

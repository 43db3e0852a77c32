"""keysounds-engine: profile resolution and effects configuration for key sounds.

This library decides which sound profile plays for the keyboard and the mouse
in the foreground application, holds the per-device audio effect parameters,
and applies hotkey actions to the runtime volume state.

Public API:
    EngineContext: Owns all stores for one process
    EngineSettings, StoragePaths: Injected configuration
    RuleStore, RuleResolver, Rule, DefaultRule: Application rules
    EffectsConfigStore, EffectConfig: Per-device audio effects
    VolumeManager, VolumeSnapshot: Volume, mute and lock state
    HotkeyDispatcher, HotkeyGroup, HotKey: Hotkey bindings
    KeysoundsError and subclasses: Exception types

Example:
    ```python
    from pathlib import Path
    from keysounds_engine import Device, EngineContext, EngineSettings, StoragePaths

    settings = EngineSettings(paths=StoragePaths.in_directory(Path.home() / ".keysounds"))

    with EngineContext(settings) as engine:
        profiles = engine.resolve(r"C:\\Program Files\\Google\\Chrome\\chrome.exe")
        engine.set_volume(Device.KEYBOARD, 40)
        engine.tick()  # from the host event loop
    ```
"""

from .context import EngineContext
from .context import EngineSettings
from .effects import EffectConfig
from .effects import EffectsConfigStore
from .effects import Equalizer
from .effects import EqualizerBands
from .effects import Pan
from .effects import PanMode
from .effects import PitchShift
from .effects import from_wire_format
from .effects import to_wire_format
from .exceptions import ConfigValidationError
from .exceptions import DuplicateKeyError
from .exceptions import InvalidPatternError
from .exceptions import KeysoundsError
from .exceptions import PersistenceFailure
from .exceptions import RuleNotFoundError
from .hotkeys import DecreaseVolume
from .hotkeys import HotKey
from .hotkeys import HotkeyDispatcher
from .hotkeys import HotkeyGroup
from .hotkeys import IncreaseVolume
from .hotkeys import ModifierKey
from .hotkeys import Mute
from .hotkeys import TargetDevice
from .hotkeys import ToggleMute
from .hotkeys import ToggleOSKHelpers
from .hotkeys import Unmute
from .models import DefaultRule
from .models import Device
from .models import ProfilesDiff
from .models import ResolvedProfiles
from .models import Rule
from .profiles import ProfileRegistry
from .resolver import RuleResolver
from .rules import RuleStore
from .rules import validate_pattern
from .storage import Section
from .storage import StoragePaths
from .volume import VolumeManager
from .volume import VolumeSnapshot

__version__ = "0.1.0"

__all__ = [
    "EngineContext",
    "EngineSettings",
    "StoragePaths",
    "Section",
    "Device",
    "Rule",
    "DefaultRule",
    "ResolvedProfiles",
    "ProfilesDiff",
    "ProfileRegistry",
    "RuleStore",
    "RuleResolver",
    "validate_pattern",
    "EffectConfig",
    "EffectsConfigStore",
    "PitchShift",
    "Pan",
    "PanMode",
    "Equalizer",
    "EqualizerBands",
    "to_wire_format",
    "from_wire_format",
    "VolumeManager",
    "VolumeSnapshot",
    "HotkeyDispatcher",
    "HotkeyGroup",
    "HotKey",
    "ModifierKey",
    "TargetDevice",
    "Mute",
    "Unmute",
    "ToggleMute",
    "IncreaseVolume",
    "DecreaseVolume",
    "ToggleOSKHelpers",
    "KeysoundsError",
    "InvalidPatternError",
    "DuplicateKeyError",
    "RuleNotFoundError",
    "ConfigValidationError",
    "PersistenceFailure",
]

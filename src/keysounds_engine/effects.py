"""Per-device audio effect parameters: pitch shift, pan and equalizer."""

import logging
import math
import random
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any

from .exceptions import ConfigValidationError
from .models import Device
from .utils import deep_merge

logger = logging.getLogger(__name__)

SEMITONE_MIN, SEMITONE_MAX = -12, 12
GAIN_MIN, GAIN_MAX = -12.0, 12.0
PAN_WIDTH_MIN, PAN_WIDTH_MAX = 1, 64

BAND_FREQUENCIES = (60, 170, 310, 600, 1000, 3000, 6000, 12000, 14000, 16000)
BAND_KEYS = ("hz60", "hz170", "hz310", "hz600", "hz1k", "hz3k", "hz6k", "hz12k", "hz14k", "hz16k")


class PanMode(Enum):
    """How a keystroke's stereo position is chosen."""

    KEY_POSITION = "key-position"
    RANDOM = "random"


@dataclass(frozen=True)
class PitchShift:
    """Random pitch offset, in semitones, applied to each playback."""

    enabled: bool = False
    lower: int = -3
    upper: int = 3

    def sample(self, rng: random.Random | None = None) -> int:
        """Draw a pitch offset uniformly from ``[lower, upper]``."""
        if not self.enabled:
            return 0
        return (rng or random).randint(self.lower, self.upper)


@dataclass(frozen=True)
class Pan:
    """Stereo panning.

    Attributes:
        enabled: Whether sounds are panned at all
        mode: Key position or random placement (mouse is always random)
        max_key_position_width: Longest physical key row, used to map a
            key's horizontal index onto the stereo field
    """

    enabled: bool = False
    mode: PanMode = PanMode.KEY_POSITION
    max_key_position_width: int = 14

    def position(self, key_x: int | None = None, rng: random.Random | None = None) -> float:
        """Stereo position in ``[-1, 1]`` for a sound.

        Args:
            key_x: Zero-based horizontal index of the key, if known
            rng: Random source for random mode
        """
        if not self.enabled:
            return 0.0
        if self.mode is PanMode.RANDOM:
            return (rng or random).uniform(-1.0, 1.0)
        if key_x is None:
            return 0.0
        value = (key_x + 1) / self.max_key_position_width * 2 - 1
        return max(-1.0, min(1.0, value))


@dataclass(frozen=True)
class EqualizerBands:
    """Gains in dB for the ten fixed equalizer bands, lowest frequency first."""

    gains: tuple[float, ...] = (0.0,) * len(BAND_FREQUENCIES)

    def __post_init__(self):
        if len(self.gains) != len(BAND_FREQUENCIES):
            raise ConfigValidationError(f"Equalizer needs {len(BAND_FREQUENCIES)} gains, got {len(self.gains)}")

    def gain(self, frequency_hz: int) -> float:
        try:
            return self.gains[BAND_FREQUENCIES.index(frequency_hz)]
        except ValueError:
            raise ConfigValidationError(f"No equalizer band at {frequency_hz} Hz") from None

    def items(self) -> list[tuple[int, float]]:
        return list(zip(BAND_FREQUENCIES, self.gains))


@dataclass(frozen=True)
class Equalizer:
    enabled: bool = False
    bands: EqualizerBands = field(default_factory=EqualizerBands)


@dataclass(frozen=True)
class EffectConfig:
    """All effect parameters for one device."""

    pitch_shift: PitchShift = field(default_factory=PitchShift)
    pan: Pan = field(default_factory=Pan)
    equalizer: Equalizer = field(default_factory=Equalizer)


def default_effect_config(device: Device) -> EffectConfig:
    if device is Device.MOUSE:
        return EffectConfig(pan=Pan(mode=PanMode.RANDOM))
    return EffectConfig()


# ===== Wire format =====


def to_wire_format(bands: EqualizerBands) -> dict[str, float]:
    """Flat band map with all ten keys in canonical order."""
    return {key: float(gain) for key, gain in zip(BAND_KEYS, bands.gains)}


def from_wire_format(mapping: Mapping[str, Any]) -> EqualizerBands:
    """Build bands from a flat band map.

    Missing keys default to 0 dB, gains are clamped to the supported range and
    unknown keys are ignored.
    """
    unknown = set(mapping) - set(BAND_KEYS)
    if unknown:
        logger.debug(f"Ignoring unknown equalizer bands: {sorted(unknown)}")
    return EqualizerBands(
        gains=tuple(_clamp(key, _number(key, mapping.get(key, 0.0)), GAIN_MIN, GAIN_MAX) for key in BAND_KEYS)
    )


# ===== Records =====


def effect_config_to_record(config: EffectConfig) -> dict[str, Any]:
    return {
        "pitch_shift": {
            "enabled": config.pitch_shift.enabled,
            "lower": config.pitch_shift.lower,
            "upper": config.pitch_shift.upper,
        },
        "pan": {
            "enabled": config.pan.enabled,
            "mode": config.pan.mode.value,
            "max_key_position_width": config.pan.max_key_position_width,
        },
        "equalizer": {
            "enabled": config.equalizer.enabled,
            "bands": to_wire_format(config.equalizer.bands),
        },
    }


def effect_config_from_record(record: Mapping[str, Any], device: Device) -> EffectConfig:
    """Parse one device's effect record, clamping every value into range.

    Raises:
        ConfigValidationError: On unknown fields, non-numeric values or an
            unknown pan mode
    """
    _check_fields("effects", record, ("pitch_shift", "pan", "equalizer"))
    defaults = default_effect_config(device)

    pitch = _section(record, "pitch_shift", ("enabled", "lower", "upper"))
    lower = _semitones("lower", pitch.get("lower", defaults.pitch_shift.lower))
    upper = _semitones("upper", pitch.get("upper", defaults.pitch_shift.upper))
    if lower > upper:
        lower, upper = upper, lower

    pan = _section(record, "pan", ("enabled", "mode", "max_key_position_width"))
    mode_name = pan.get("mode", defaults.pan.mode.value)
    try:
        mode = PanMode(mode_name)
    except ValueError:
        raise ConfigValidationError(f"Unknown pan mode: {mode_name!r}") from None
    if device is Device.MOUSE:
        mode = PanMode.RANDOM
    width_value = _number("max_key_position_width", pan.get("max_key_position_width", 14))
    width = int(round(_clamp("max_key_position_width", width_value, PAN_WIDTH_MIN, PAN_WIDTH_MAX)))

    equalizer = _section(record, "equalizer", ("enabled", "bands"))
    bands = equalizer.get("bands") or {}
    if not isinstance(bands, Mapping):
        raise ConfigValidationError("Equalizer bands must be a mapping")

    return EffectConfig(
        pitch_shift=PitchShift(
            enabled=bool(pitch.get("enabled", defaults.pitch_shift.enabled)),
            lower=lower,
            upper=upper,
        ),
        pan=Pan(enabled=bool(pan.get("enabled", False)), mode=mode, max_key_position_width=width),
        equalizer=Equalizer(enabled=bool(equalizer.get("enabled", False)), bands=from_wire_format(bands)),
    )


class EffectsConfigStore:
    """Holds the effect parameters for both devices.

    Updates are partial: ``set`` deep merges a record-shaped mapping over the
    current parameters, then clamps the result. Out-of-range values are
    corrected, never rejected.
    """

    def __init__(self, keyboard: EffectConfig | None = None, mouse: EffectConfig | None = None):
        self._configs = {
            Device.KEYBOARD: keyboard or default_effect_config(Device.KEYBOARD),
            Device.MOUSE: mouse or default_effect_config(Device.MOUSE),
        }

    def get(self, device: Device) -> EffectConfig:
        return self._configs[device]

    def set(self, device: Device, partial: Mapping[str, Any]) -> EffectConfig:
        """Apply a partial update to one device.

        Args:
            device: Device to update
            partial: Subset of the record shape, e.g. ``{"pan": {"enabled": True}}``

        Returns:
            The new effect config for the device
        """
        if not isinstance(partial, Mapping):
            raise ConfigValidationError("Effect update must be a mapping")
        merged = deep_merge(effect_config_to_record(self._configs[device]), dict(partial))
        config = effect_config_from_record(merged, device)
        self._configs[device] = config
        return config

    def to_record(self) -> dict[str, Any]:
        return {device.value: effect_config_to_record(self._configs[device]) for device in Device}

    @classmethod
    def from_record(cls, record: Any) -> "EffectsConfigStore":
        if not isinstance(record, Mapping):
            raise ConfigValidationError("Effects record must be a mapping")
        configs = {}
        for device in Device:
            device_record = record.get(device.value) or {}
            if not isinstance(device_record, Mapping):
                raise ConfigValidationError(f"Effects for {device.value} must be a mapping")
            configs[device] = effect_config_from_record(device_record, device)
        return cls(keyboard=configs[Device.KEYBOARD], mouse=configs[Device.MOUSE])


def _check_fields(name: str, record: Mapping[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = set(record) - set(allowed)
    if unknown:
        raise ConfigValidationError(f"Unknown {name} fields: {sorted(unknown)}")


def _section(record: Mapping[str, Any], name: str, allowed: tuple[str, ...]) -> Mapping[str, Any]:
    section = record.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigValidationError(f"{name} must be a mapping")
    _check_fields(name, section, allowed)
    return section


def _number(name: str, value: Any) -> float:
    """Validate a numeric field. Infinities are kept for clamping; NaN is rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"{name} must be a number, got {value!r}")
    if math.isnan(value):
        raise ConfigValidationError(f"{name} must not be NaN")
    return float(value)


def _clamp(name: str, value: float, low: float, high: float) -> float:
    clamped = max(low, min(high, value))
    if clamped != value:
        logger.debug(f"Clamped {name} {value} to {clamped}")
    return clamped


def _semitones(name: str, value: Any) -> int:
    return int(round(_clamp(name, _number(name, value), SEMITONE_MIN, SEMITONE_MAX)))

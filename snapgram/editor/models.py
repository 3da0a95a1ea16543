"""
Data models for the photo editor: slider adjustments and named presets.
"""

from dataclasses import dataclass, asdict, replace, fields
from typing import Dict, Any, Optional, Tuple, List


# Slider ranges enforced by the input surface (inclusive)
ADJUSTMENT_RANGES: Dict[str, Tuple[float, float]] = {
    'brightness': (0.0, 200.0),
    'contrast': (0.0, 200.0),
    'saturation': (0.0, 200.0),
    'blur': (0.0, 10.0),
}

IDENTITY_PRESET = "Normal"


class UnknownPresetError(KeyError):
    """Raised when a preset name is not one of the built-in presets."""
    pass


@dataclass(frozen=True)
class AdjustmentSet:
    """User-controlled filter sliders plus the selected preset."""
    brightness: float = 100.0  # percent, 0-200
    contrast: float = 100.0  # percent, 0-200
    saturation: float = 100.0  # percent, 0-200
    blur: float = 0.0  # radius in px, 0-10
    active_preset: Optional[str] = None

    def with_changes(self, **changes) -> 'AdjustmentSet':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def clamped(self) -> 'AdjustmentSet':
        """Clamp every numeric field into its slider range."""
        values = {}
        for name, (low, high) in ADJUSTMENT_RANGES.items():
            values[name] = min(max(float(getattr(self, name)), low), high)
        return replace(self, **values)

    def is_default(self) -> bool:
        return self == AdjustmentSet()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AdjustmentSet':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class Preset:
    """
    A fixed bundle of filter amounts applied on top of the sliders.

    Multipliers (brightness, contrast, saturate) are fractions where 1.0 is
    unchanged; grayscale and sepia are amounts in 0-1. Zero means "not set"
    and the term is left out of the chain.
    """
    name: str
    grayscale: float = 0.0
    sepia: float = 0.0
    brightness: float = 0.0
    contrast: float = 0.0
    saturate: float = 0.0

    @property
    def is_identity(self) -> bool:
        return not any((self.grayscale, self.sepia, self.brightness,
                        self.contrast, self.saturate))


_BUILTIN_PRESETS: List[Preset] = [
    Preset(IDENTITY_PRESET),
    Preset("Clarendon", saturate=1.3, contrast=1.2, brightness=1.1),
    Preset("Gingham", sepia=0.1, contrast=0.9, brightness=1.1),
    Preset("Moon", grayscale=0.8, brightness=1.2, contrast=1.1),
    Preset("Lark", brightness=1.2, contrast=0.9, saturate=1.1),
    Preset("Reyes", sepia=0.3, brightness=1.1, contrast=0.8, saturate=0.9),
    Preset("Juno", saturate=1.4, contrast=1.1, brightness=1.05),
    Preset("Slumber", brightness=0.9, saturate=0.8, sepia=0.2),
]

PRESETS: Dict[str, Preset] = {preset.name: preset for preset in _BUILTIN_PRESETS}


def get_preset(name: str) -> Preset:
    """Look up a built-in preset by name."""
    try:
        return PRESETS[name]
    except KeyError:
        raise UnknownPresetError(name) from None


def list_presets() -> List[Preset]:
    """Built-in presets in display order."""
    return list(_BUILTIN_PRESETS)

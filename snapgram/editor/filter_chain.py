"""
Composite filter chain construction.

The sliders always come first, in the fixed order brightness, contrast,
saturate, then blur (only when non-zero). A selected non-identity preset
appends its own grayscale, sepia, brightness, contrast and saturate terms
after them, skipping any that are zero.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from .models import AdjustmentSet, Preset, get_preset


PERCENT = "%"
PIXELS = "px"
PRESET_TERM_ORDER = ("grayscale", "sepia", "brightness", "contrast", "saturate")


def _format_number(value: float) -> str:
    # 1.1 * 100 is 110.00000000000001; render it as 110
    return f"{round(float(value), 4):g}"


@dataclass(frozen=True)
class FilterTerm:
    """A single filter function with its argument."""
    function: str
    value: float
    unit: str = ""

    @property
    def amount(self) -> float:
        """Argument as a plain factor (120% -> 1.2); px values unchanged."""
        if self.unit == PERCENT:
            return self.value / 100.0
        return self.value

    def to_css(self) -> str:
        return f"{self.function}({_format_number(self.value)}{self.unit})"


@dataclass(frozen=True)
class FilterChain:
    """Ordered, immutable sequence of filter terms."""
    terms: Tuple[FilterTerm, ...] = ()

    def __iter__(self) -> Iterator[FilterTerm]:
        return iter(self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def __str__(self) -> str:
        return self.to_css()

    def to_css(self) -> str:
        return " ".join(term.to_css() for term in self.terms)


def _preset_terms(preset: Preset) -> Tuple[FilterTerm, ...]:
    terms = []
    for name in PRESET_TERM_ORDER:
        value = getattr(preset, name)
        if not value:
            continue
        if name in ("grayscale", "sepia"):
            terms.append(FilterTerm(name, value))
        else:
            terms.append(FilterTerm(name, value * 100, PERCENT))
    return tuple(terms)


def _resolve_preset(adjustments: AdjustmentSet,
                    preset: Optional[Union[str, Preset]]) -> Optional[Preset]:
    if preset is None:
        preset = adjustments.active_preset
    if preset is None:
        return None
    if isinstance(preset, str):
        return get_preset(preset)
    return preset


def build_filter_chain(adjustments: AdjustmentSet,
                       preset: Optional[Union[str, Preset]] = None) -> FilterChain:
    """
    Build the composite chain for a set of sliders and an optional preset.

    Args:
        adjustments: Slider values; its ``active_preset`` is used when
            ``preset`` is not given
        preset: Preset name or instance overriding ``active_preset``

    Returns:
        FilterChain with manual terms before preset terms
    """
    terms = [
        FilterTerm("brightness", adjustments.brightness, PERCENT),
        FilterTerm("contrast", adjustments.contrast, PERCENT),
        FilterTerm("saturate", adjustments.saturation, PERCENT),
    ]
    if adjustments.blur > 0:
        terms.append(FilterTerm("blur", adjustments.blur, PIXELS))

    resolved = _resolve_preset(adjustments, preset)
    if resolved is not None and not resolved.is_identity:
        terms.extend(_preset_terms(resolved))

    return FilterChain(tuple(terms))


def preset_filter_chain(preset: Union[str, Preset]) -> FilterChain:
    """Chain for a preset on its own, as used for the preset thumbnails."""
    if isinstance(preset, str):
        preset = get_preset(preset)
    return FilterChain(_preset_terms(preset))


def preset_filter_string(preset: Union[str, Preset]) -> str:
    return preset_filter_chain(preset).to_css()

"""
Photo editor for Snapgram

Slider and preset filter compositing rendered at full resolution and
exported as JPEG for upload.
"""

from .models import (
    AdjustmentSet, Preset, PRESETS, IDENTITY_PRESET, ADJUSTMENT_RANGES,
    UnknownPresetError, get_preset, list_presets
)
from .filter_chain import (
    FilterTerm, FilterChain, build_filter_chain,
    preset_filter_chain, preset_filter_string
)
from .ops import apply_filter_chain
from .compositor import FilterCompositor, decode_image, encode_jpeg

__all__ = [
    "AdjustmentSet",
    "Preset",
    "PRESETS",
    "IDENTITY_PRESET",
    "ADJUSTMENT_RANGES",
    "UnknownPresetError",
    "get_preset",
    "list_presets",
    "FilterTerm",
    "FilterChain",
    "build_filter_chain",
    "preset_filter_chain",
    "preset_filter_string",
    "apply_filter_chain",
    "FilterCompositor",
    "decode_image",
    "encode_jpeg",
]

"""
Filter compositor for the post editor.

Holds a decoded source image and the current slider/preset state, and
regenerates the full-resolution render target on every change. The
committed result is exported as a JPEG blob for upload.
"""

import io
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import cv2
import numpy as np
from PIL import Image, ImageOps

from ..config import get_config_value
from ..exceptions import ImageLoadError
from .filter_chain import FilterChain, build_filter_chain, preset_filter_chain
from .models import AdjustmentSet, ADJUSTMENT_RANGES, get_preset, list_presets
from .ops import apply_filter_chain

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, Image.Image, np.ndarray]
RenderListener = Callable[[np.ndarray], None]

DEFAULT_JPEG_QUALITY = 0.9
THUMBNAIL_SIZE = 64


def decode_image(source: ImageSource) -> np.ndarray:
    """
    Decode an image source into an HxWx3 uint8 RGB array.

    EXIF orientation is applied, so the array has the upright dimensions.

    Raises:
        ImageLoadError: if the source cannot be read or decoded
    """
    try:
        if isinstance(source, np.ndarray):
            if source.ndim != 3 or source.shape[2] != 3 or source.dtype != np.uint8:
                raise ValueError("Expected HxWx3 uint8 RGB array")
            return source.copy()
        if isinstance(source, Image.Image):
            img = source
        elif isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(Path(source))
        img.load()
        img = ImageOps.exif_transpose(img)
        return np.asarray(img.convert("RGB"), dtype=np.uint8).copy()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageLoadError(f"Could not load image: {e}") from e


def encode_jpeg(rgb8: np.ndarray, quality: float = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode an RGB array as JPEG; ``quality`` is a 0-1 factor."""
    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(rgb8)).save(
        buffer, format="JPEG", quality=int(round(quality * 100))
    )
    return buffer.getvalue()


class FilterCompositor:
    """
    Renders a source image through the current filter chain.

    The render target always has the source's natural dimensions. Any
    change to the sliders or the preset regenerates it in full; without a
    loaded source, rendering and export are no-ops.
    """

    def __init__(self, jpeg_quality: float = DEFAULT_JPEG_QUALITY,
                 thumbnail_size: int = THUMBNAIL_SIZE):
        self.jpeg_quality = jpeg_quality
        self.thumbnail_size = thumbnail_size
        self._adjustments = AdjustmentSet()
        self._source: Optional[np.ndarray] = None
        self._render_target: Optional[np.ndarray] = None
        self._listeners: List[RenderListener] = []
        self.load_error: Optional[str] = None
        self.render_count = 0

    @classmethod
    def from_config(cls, config: Dict) -> 'FilterCompositor':
        return cls(
            jpeg_quality=get_config_value(config, 'editor.jpeg_quality', DEFAULT_JPEG_QUALITY),
            thumbnail_size=get_config_value(config, 'editor.thumbnail_size', THUMBNAIL_SIZE),
        )

    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------
    def load(self, source: ImageSource) -> bool:
        """
        Load the source image and render it once.

        Returns:
            True on success. On failure the compositor stays unloaded,
            ``load_error`` holds the reason and export is unavailable.
        """
        try:
            decoded = decode_image(source)
        except ImageLoadError as e:
            logger.error(f"Source image failed to load: {e}")
            self._source = None
            self._render_target = None
            self.load_error = str(e)
            return False

        self._source = decoded
        self.load_error = None
        height, width = decoded.shape[:2]
        logger.debug(f"Loaded source image {width}x{height}")
        self.render()
        return True

    @property
    def is_loaded(self) -> bool:
        return self._source is not None

    @property
    def size(self) -> Optional[tuple]:
        """(width, height) of the source, or None."""
        if self._source is None:
            return None
        height, width = self._source.shape[:2]
        return width, height

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------
    @property
    def adjustments(self) -> AdjustmentSet:
        return self._adjustments

    @property
    def filter_chain(self) -> FilterChain:
        return build_filter_chain(self._adjustments)

    @property
    def filter_string(self) -> str:
        return self.filter_chain.to_css()

    def set_adjustment(self, name: str, value: float) -> None:
        """Set one slider (brightness, contrast, saturation or blur)."""
        if name not in ADJUSTMENT_RANGES:
            raise ValueError(f"Unknown adjustment: {name}")
        self._update(self._adjustments.with_changes(**{name: float(value)}))

    def set_adjustments(self, **changes) -> None:
        for name in changes:
            if name not in ADJUSTMENT_RANGES:
                raise ValueError(f"Unknown adjustment: {name}")
        self._update(self._adjustments.with_changes(
            **{k: float(v) for k, v in changes.items()}
        ))

    def select_preset(self, name: Optional[str]) -> None:
        """Select a preset by name, or clear it with None."""
        if name is not None:
            get_preset(name)
        self._update(self._adjustments.with_changes(active_preset=name))

    def reset(self) -> None:
        """Restore default sliders, clear the preset and re-render once."""
        self._adjustments = AdjustmentSet()
        self.render()

    def _update(self, adjustments: AdjustmentSet) -> None:
        adjustments = adjustments.clamped()
        if adjustments == self._adjustments:
            return
        self._adjustments = adjustments
        self.render()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def on_render(self, listener: RenderListener) -> Callable[[], None]:
        """Register a listener for new render targets; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def render_target(self) -> Optional[np.ndarray]:
        return self._render_target

    def render(self) -> Optional[np.ndarray]:
        """
        Regenerate the render target from the source and current chain.

        Returns:
            The new HxWx3 uint8 render target, or None when no source is loaded
        """
        if self._source is None:
            return None

        self._render_target = apply_filter_chain(self._source, self.filter_chain)
        self.render_count += 1
        for listener in list(self._listeners):
            listener(self._render_target)
        return self._render_target

    @property
    def can_export(self) -> bool:
        return self._source is not None

    def export(self) -> Optional[bytes]:
        """
        Encode the current render as JPEG.

        Returns:
            JPEG bytes, or None when there is nothing to export
        """
        if not self.can_export:
            logger.warning("Export requested without a loaded source image")
            return None
        if self._render_target is None:
            self.render()
        return encode_jpeg(self._render_target, self.jpeg_quality)

    def preview_thumbnails(self, size: Optional[int] = None) -> Dict[str, np.ndarray]:
        """
        Render each preset on its own over a downscaled copy of the source.

        Returns:
            Mapping of preset name to thumbnail, empty when nothing is loaded
        """
        if self._source is None:
            return {}

        size = size or self.thumbnail_size
        height, width = self._source.shape[:2]
        scale = size / float(max(height, width))
        if scale < 1.0:
            thumb = cv2.resize(
                self._source,
                (max(1, int(round(width * scale))), max(1, int(round(height * scale)))),
                interpolation=cv2.INTER_AREA,
            )
        else:
            thumb = self._source

        return {
            preset.name: apply_filter_chain(thumb, preset_filter_chain(preset))
            for preset in list_presets()
        }

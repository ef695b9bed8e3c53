"""
Crop and tile geometry for identity photos.

- center_crop_estimation: where the crop window sits, from crown/chin and the standard
- compute_crop_window:    the window itself, clamped horizontally into the source
- crop_picture:           extract (padding outside the source) and resample to the standard
- tile_cropped_photo:     lay copies of the cropped photo on a print sheet
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from photoprint.core.models import CanvasDefinition, PhotoStandard, Point

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)


@dataclass(frozen=True)
class CropWindow:
    """Crop rectangle in source pixels (float; may extend past the source)."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Point:
        return Point(self.left + self.width / 2.0, self.top + self.height / 2.0)

    def to_output(self, p: Point, out_w: int, out_h: int) -> Point:
        """Map a source point into the pixels of the resampled crop."""
        return Point(
            (p.x - self.left) * out_w / self.width,
            (p.y - self.top) * out_h / self.height,
        )

    def padding_fraction(self, image_w: int, image_h: int) -> float:
        """Share of the window area that lies outside a `image_w x image_h` source."""
        ix = max(0.0, min(self.right, image_w) - max(self.left, 0.0))
        iy = max(0.0, min(self.bottom, image_h) - max(self.top, 0.0))
        area = self.width * self.height
        return 1.0 - (ix * iy) / area if area > 0 else 1.0


def _window_size(standard: PhotoStandard, crown_point: Point, chin_point: Point) -> Tuple[float, float]:
    span = abs(chin_point.y - crown_point.y)
    if span <= 0:
        raise ValueError("Crown and chin are at the same height; cannot size the crop")
    crop_h = span / standard.required_ratio
    crop_w = crop_h * standard.width_px / standard.height_px
    return crop_w, crop_h


def center_crop_estimation(standard: PhotoStandard, crown_point: Point, chin_point: Point) -> Point:
    """
    Center of the crop window before any clamping.

    The facial axis (midway between crown and chin horizontally) lands at
    `face_center_ratio` of the photo width; the crown lands `crown_top_ratio`
    of the photo height below the top edge.
    """
    crop_w, crop_h = _window_size(standard, crown_point, chin_point)
    axis_x = (crown_point.x + chin_point.x) / 2.0
    crown_y = min(crown_point.y, chin_point.y)
    left = axis_x - standard.face_center_ratio * crop_w
    top = crown_y - standard.crown_top_ratio * crop_h
    return Point(left + crop_w / 2.0, top + crop_h / 2.0)


def compute_crop_window(
    image_shape: Sequence[int],
    crown_point: Point,
    chin_point: Point,
    standard: PhotoStandard,
) -> CropWindow:
    h, w = int(image_shape[0]), int(image_shape[1])
    crop_w, crop_h = _window_size(standard, crown_point, chin_point)
    center = center_crop_estimation(standard, crown_point, chin_point)
    left = center.x - crop_w / 2.0
    top = center.y - crop_h / 2.0

    # Keep the window inside the source horizontally when it is narrow enough
    if crop_w <= w:
        left = min(max(left, 0.0), w - crop_w)

    return CropWindow(left=left, top=top, width=crop_w, height=crop_h)


def _fill_values(img: np.ndarray, fill_color) -> np.ndarray:
    """fill_color as one value per channel of img."""
    fill = np.atleast_1d(np.asarray(fill_color, dtype=img.dtype))
    if img.ndim == 2:
        return fill[:1]
    if img.shape[2] > fill.size:
        # e.g. BGR fill for a BGRA image: extra channels opaque
        extra = np.full(img.shape[2] - fill.size, 255, dtype=img.dtype)
        return np.concatenate([fill, extra])
    return fill[: img.shape[2]]


def _blank_like(img: np.ndarray, width: int, height: int, fill_color) -> np.ndarray:
    """New `width x height` array with img's channels and dtype, filled with fill_color."""
    out = np.empty((height, width) + img.shape[2:], dtype=img.dtype)
    fill = _fill_values(img, fill_color)
    out[...] = fill[0] if img.ndim == 2 else fill
    return out


def _extract_with_padding(img: np.ndarray, left: int, top: int, width: int, height: int, fill_color) -> np.ndarray:
    """
    Copy the `width x height` region at (left, top) out of img.
    Parts outside the image are filled with fill_color.
    """
    h, w = img.shape[:2]
    out = _blank_like(img, width, height, fill_color)

    src_left = max(0, left)
    src_top = max(0, top)
    src_right = min(w, left + width)
    src_bottom = min(h, top + height)

    if src_left >= src_right or src_top >= src_bottom:
        return out

    dst_left = src_left - left
    dst_top = src_top - top
    dst_right = dst_left + (src_right - src_left)
    dst_bottom = dst_top + (src_bottom - src_top)

    out[dst_top:dst_bottom, dst_left:dst_right] = img[src_top:src_bottom, src_left:src_right]
    return out


def _resize(img: np.ndarray, width: int, height: int) -> np.ndarray:
    if img.shape[1] == width and img.shape[0] == height:
        return img.copy()
    shrinking = width < img.shape[1] and height < img.shape[0]
    interp = cv2.INTER_AREA if shrinking else cv2.INTER_LANCZOS4
    return cv2.resize(img, (width, height), interpolation=interp)


def _warp_window(img: np.ndarray, window: CropWindow, out_w: int, out_h: int, fill_color) -> np.ndarray:
    """
    Resample the float `window` of img to `out_w x out_h` with no rounding of
    its position or size, so `window.to_output` holds for every pixel.

    When shrinking, the covering pixel region is first reduced with INTER_AREA
    and the remaining near-unit affine is applied with INTER_LINEAR; when
    enlarging, the whole affine is applied with INTER_LANCZOS4.
    """
    # Integer region covering the window plus one pixel for interpolation
    rl = int(math.floor(window.left)) - 1
    rt = int(math.floor(window.top)) - 1
    rw = int(math.ceil(window.right)) + 1 - rl
    rh = int(math.ceil(window.bottom)) + 1 - rt
    region = _extract_with_padding(img, rl, rt, rw, rh, fill_color)

    sx = out_w / window.width
    sy = out_h / window.height
    kx = ky = 1.0
    interp = cv2.INTER_LANCZOS4
    if sx < 1.0 and sy < 1.0:
        rw2 = max(1, int(round(rw * sx)))
        rh2 = max(1, int(round(rh * sy)))
        region = cv2.resize(region, (rw2, rh2), interpolation=cv2.INTER_AREA)
        kx, ky = rw2 / rw, rh2 / rh
        interp = cv2.INTER_LINEAR

    # Continuous coords: region u -> source rl + u / k -> output (src - left) * s.
    # Pixel indices sit half a pixel off continuous coords on both sides.
    ax, ay = sx / kx, sy / ky
    bx = (rl - window.left) * sx
    by = (rt - window.top) * sy
    m = np.array(
        [[ax, 0.0, 0.5 * ax + bx - 0.5],
         [0.0, ay, 0.5 * ay + by - 0.5]],
        dtype=np.float64,
    )
    border = tuple(float(v) for v in _fill_values(img, fill_color))
    return cv2.warpAffine(
        region, m, (out_w, out_h),
        flags=interp,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border,
    )


def crop_picture(
    original_image: np.ndarray,
    crown_point: Point,
    chin_point: Point,
    standard: PhotoStandard,
    fill_color=WHITE,
    window: Optional[CropWindow] = None,
) -> np.ndarray:
    """
    Crop `original_image` so the crown-chin span is `standard.required_ratio`
    of the output height, and resample to `standard.width_px x standard.height_px`.

    Window areas outside the source are padded with `fill_color`. Pass
    `window` to reuse one already computed with `compute_crop_window`.
    """
    if original_image is None or original_image.size == 0:
        raise ValueError("Input image is empty")

    if window is None:
        window = compute_crop_window(original_image.shape, crown_point, chin_point, standard)
    pad = window.padding_fraction(original_image.shape[1], original_image.shape[0])
    if pad > 0:
        logger.info("Crop window extends past the source image; padding %.1f%% of it", pad * 100)

    return _warp_window(original_image, window, standard.width_px, standard.height_px, fill_color)


def tile_cropped_photo(
    canvas: CanvasDefinition,
    standard: PhotoStandard,
    cropped_image: np.ndarray,
    fill_color=WHITE,
) -> np.ndarray:
    """Tile as many copies of `cropped_image` as fit on the canvas, row-major from the top-left."""
    ppmm = canvas.resolution_ppmm
    canvas_w, canvas_h = canvas.width_px, canvas.height_px
    photo_w = int(round(standard.photo_width_mm * ppmm))
    photo_h = int(round(standard.photo_height_mm * ppmm))
    gap = int(round(canvas.border_mm * ppmm))

    sheet = _blank_like(cropped_image, canvas_w, canvas_h, fill_color)

    if photo_w <= 0 or photo_h <= 0:
        logger.warning("Photo is smaller than one canvas pixel; nothing to tile")
        return sheet

    cols = (canvas_w + gap) // (photo_w + gap)
    rows = (canvas_h + gap) // (photo_h + gap)
    logger.debug("Tiling %d x %d copies of %dx%d px on %dx%d px", cols, rows, photo_w, photo_h, canvas_w, canvas_h)
    if cols == 0 or rows == 0:
        return sheet

    photo = _resize(cropped_image, photo_w, photo_h)
    for r in range(rows):
        y = r * (photo_h + gap)
        for c in range(cols):
            x = c * (photo_w + gap)
            sheet[y:y + photo_h, x:x + photo_w] = photo
    return sheet

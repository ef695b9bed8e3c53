#!/usr/bin/env python3
"""
photo_print.py

Build a print-ready sheet of identity photos from a portrait:
- Detects the face (MediaPipe FaceLandmarker) and estimates crown/chin
- Crops to a photo standard so the head fills the required share of the height
- Tiles as many copies as fit on the print canvas
- Writes a PNG with the canvas resolution in its pHYs chunk

Usage:
  python photo_print.py --input in.jpg --output sheet.png
  python photo_print.py -i in.jpg -o sheet.png --standard schengen --canvas a4
  python photo_print.py -i in.jpg -o photo.png --crop-only --crown 410 220 --chin 405 780
  python photo_print.py -i in.jpg -o sheet.png --standard my_standard.json --config coeffs.json

Notes:
- Always verify the printed photo against the official requirements for your document.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, Optional

import cv2
import numpy as np
from PIL import Image, ImageOps

from photoprint.core.crown_chin import CrownChinEstimator
from photoprint.core.models import CANVASES, MM_PER_INCH, PHOTO_STANDARDS, CanvasDefinition, PhotoStandard, Point
from photoprint.core.png_chunks import read_resolution, set_resolution_metadata
from photoprint.core.print_maker import compute_crop_window, crop_picture, tile_cropped_photo
from photoprint.validation.validator import format_report_text, validate_cropped_photo

logger = logging.getLogger("photo_print")


def _load_image_bgr(path: str) -> np.ndarray:
    """Load an image, apply EXIF orientation, return an OpenCV BGR array."""
    img = Image.open(path)
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _resolve_standard(value: str) -> PhotoStandard:
    if value in PHOTO_STANDARDS:
        return PHOTO_STANDARDS[value]
    return PhotoStandard.from_dict(_load_json(value))


def _resolve_canvas(value: str) -> CanvasDefinition:
    if value in CANVASES:
        return CANVASES[value]
    return CanvasDefinition.from_dict(_load_json(value))


def _crown_chin_from_image(img_bgr: np.ndarray, estimator: CrownChinEstimator, model_path: Optional[str]):
    # Imported here so --crown/--chin runs work without mediapipe installed
    from photoprint.detection.face_mesh import detect_landmarks

    landmarks = detect_landmarks(img_bgr, model_path)
    result = estimator.estimate(landmarks)
    if not result.ok:
        raise RuntimeError(f"Could not estimate crown/chin ({result.reason.value}). Try a front-facing photo.")
    return result.crown_point, result.chin_point


def encode_png(img_bgr: np.ndarray, resolution_ppmm: float) -> bytes:
    ok, encoded = cv2.imencode(".png", img_bgr)
    if not ok:
        raise RuntimeError("PNG encoding failed")
    return set_resolution_metadata(encoded.tobytes(), resolution_ppmm)


def process_photo_print(
    input_path: str,
    output_path: str,
    standard: PhotoStandard,
    canvas: CanvasDefinition,
    estimator: Optional[CrownChinEstimator] = None,
    crown_point: Optional[Point] = None,
    chin_point: Optional[Point] = None,
    crop_only: bool = False,
    model_path: Optional[str] = None,
) -> str:
    """
    Process input image and write a PNG to output_path.

    Returns the validation report text for the cropped photo.
    """
    estimator = estimator or CrownChinEstimator()
    img = _load_image_bgr(input_path)

    if crown_point is None or chin_point is None:
        crown_point, chin_point = _crown_chin_from_image(img, estimator, model_path)
    logger.info("Crown at (%.0f, %.0f), chin at (%.0f, %.0f)", crown_point.x, crown_point.y, chin_point.x, chin_point.y)

    window = compute_crop_window(img.shape, crown_point, chin_point, standard)
    cropped = crop_picture(img, crown_point, chin_point, standard, window=window)
    report = validate_cropped_photo(cropped, standard, window, crown_point, chin_point, img.shape)

    if crop_only:
        png = encode_png(cropped, standard.resolution_dpi / MM_PER_INCH)
    else:
        sheet = tile_cropped_photo(canvas, standard, cropped)
        png = encode_png(sheet, canvas.resolution_ppmm)

    logger.debug("pHYs written: %s", read_resolution(png))
    with open(output_path, "wb") as f:
        f.write(png)
    return format_report_text(report)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Generate a print sheet of identity photos from a portrait.")
    p.add_argument("--input", "-i", required=True, help="Path to input image (jpg/png)")
    p.add_argument("--output", "-o", required=True, help="Path to output PNG")
    p.add_argument("--standard", default="us",
                   help=f"Photo standard: one of {', '.join(PHOTO_STANDARDS)} or a JSON file (default: us)")
    p.add_argument("--canvas", default="4x6in",
                   help=f"Print canvas: one of {', '.join(CANVASES)} or a JSON file (default: 4x6in)")
    p.add_argument("--config", help="JSON file with chinCrownCoeff / chinFrownCoeff overrides")
    p.add_argument("--crown", nargs=2, type=float, metavar=("X", "Y"), help="Crown point; skips detection")
    p.add_argument("--chin", nargs=2, type=float, metavar=("X", "Y"), help="Chin point; skips detection")
    p.add_argument("--crop-only", action="store_true", help="Write the single cropped photo instead of a sheet")
    p.add_argument("--model", help="Path to the MediaPipe face_landmarker.task model")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if (args.crown is None) != (args.chin is None):
        print("ERROR: --crown and --chin must be given together", file=sys.stderr)
        return 2

    try:
        estimator = CrownChinEstimator()
        if args.config:
            estimator = estimator.configure(_load_json(args.config))
        report_text = process_photo_print(
            input_path=args.input,
            output_path=args.output,
            standard=_resolve_standard(args.standard),
            canvas=_resolve_canvas(args.canvas),
            estimator=estimator,
            crown_point=Point(*args.crown) if args.crown else None,
            chin_point=Point(*args.chin) if args.chin else None,
            crop_only=args.crop_only,
            model_path=args.model,
        )
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print(report_text)
    print(f"Saved: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

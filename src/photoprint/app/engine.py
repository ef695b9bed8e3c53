from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import re
from typing import Any, Dict, Mapping, Optional, Union

import cv2
import numpy as np

from photoprint.core.crown_chin import CrownChinEstimator
from photoprint.core.models import CanvasDefinition, LandmarkSet, PhotoStandard, Point
from photoprint.core.png_chunks import set_resolution_metadata
from photoprint.core.print_maker import crop_picture, tile_cropped_photo

logger = logging.getLogger(__name__)

# The detector needs MediaPipe; the rest of the engine works without it.
_detect_landmarks = None
try:
    from photoprint.detection.face_mesh import detect_landmarks as _face_mesh_detect_landmarks
    _detect_landmarks = _face_mesh_detect_landmarks
except Exception:
    _detect_landmarks = None

_DATA_URL_RE = re.compile(r"^data:([a-z]+/[a-z0-9.+\-]+(;[a-z\-]+=[a-z0-9\-]+)?)?(;base64)?,", re.IGNORECASE)


def _as_mapping(value: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object")
    return parsed


def decode_image_data(data: Union[bytes, str]) -> bytes:
    """Raw encoded image bytes from bytes, base64 text or a data URL."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    m = _DATA_URL_RE.match(data)
    payload = data[m.end():] if m else data
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


class PrintEngine:
    """
    Request-level entry point: holds decoded images by id and runs
    detect -> estimate -> crop -> tile -> encode on them.

    Not thread-safe; use one engine per caller.
    """

    def __init__(self, estimator: Optional[CrownChinEstimator] = None, model_path: Optional[str] = None):
        self.estimator = estimator or CrownChinEstimator()
        self.model_path = model_path
        self._images: Dict[str, np.ndarray] = {}

    def configure(self, config: Union[str, bytes, Mapping[str, Any]]) -> bool:
        cfg = _as_mapping(config)
        section = cfg.get("crownChin", cfg)
        self.estimator = self.estimator.configure(section)
        if cfg.get("faceModel"):
            self.model_path = str(cfg["faceModel"])
        logger.debug("Estimator configured: %s", self.estimator.coefficients)
        return True

    def set_image(self, data: Union[bytes, str]) -> str:
        raw = decode_image_data(data)
        if not raw:
            raise ValueError("Empty image data")
        img = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            raise ValueError("Could not decode image data")
        image_id = hashlib.sha1(raw).hexdigest()
        self._images[image_id] = img
        logger.info("Stored image %s (%dx%d)", image_id, img.shape[1], img.shape[0])
        return image_id

    def image(self, image_id: str) -> np.ndarray:
        try:
            return self._images[image_id]
        except KeyError:
            raise KeyError(f"Unknown image id: {image_id}") from None

    def detect_landmarks(self, image_id: str) -> LandmarkSet:
        img = self.image(image_id)
        if _detect_landmarks is None:
            raise RuntimeError("Landmark detection requires mediapipe, which is not available.")
        landmarks = _detect_landmarks(img, self.model_path)
        if not self.estimator.estimate_crown_chin(landmarks):
            logger.warning("Could not estimate crown/chin for image %s", image_id)
        return landmarks

    def create_tiled_print(self, image_id: str, request: Union[str, bytes, Mapping[str, Any]]) -> Union[bytes, str]:
        req = _as_mapping(request)
        img = self.image(image_id)
        standard = PhotoStandard.from_dict(req["standard"])
        canvas = CanvasDefinition.from_dict(req["canvas"])
        crown = Point.from_dict(req["crownPoint"])
        chin = Point.from_dict(req["chinPoint"])

        cropped = crop_picture(img, crown, chin, standard)
        sheet = tile_cropped_photo(canvas, standard, cropped)

        ok, encoded = cv2.imencode(".png", sheet)
        if not ok:
            raise RuntimeError("PNG encoding failed")
        png = set_resolution_metadata(encoded.tobytes(), canvas.resolution_ppmm)

        if req.get("asBase64", False):
            return base64.b64encode(png).decode("ascii")
        return png

from __future__ import annotations

import logging
import os
from typing import Optional

import cv2
import numpy as np

# MediaPipe Tasks for face landmarks
import mediapipe as mp
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision

from photoprint.core.models import LandmarkSet, Point

logger = logging.getLogger(__name__)

MODEL_ENV_VAR = "PHOTOPRINT_FACE_MODEL"
DEFAULT_MODEL_PATH = "face_landmarker.task"

# FaceLandmarker 478-point mesh indices
LEFT_PUPIL = 468
RIGHT_PUPIL = 473
LIP_LEFT_CORNER = 61
LIP_RIGHT_CORNER = 291
FOREHEAD = 10
CHIN = 152
NOSE_TIP = 1


def resolve_model_path(model_path: Optional[str] = None) -> str:
    path = model_path or os.environ.get(MODEL_ENV_VAR) or DEFAULT_MODEL_PATH
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"MediaPipe face landmarker model not found: {path} "
            f"(pass a path or set {MODEL_ENV_VAR})"
        )
    return path


def detect_landmarks(image_bgr: np.ndarray, model_path: Optional[str] = None) -> LandmarkSet:
    """
    Detect a single face and return its landmarks in source pixels.

    The pupils and lip corners feed the crown/chin estimator; forehead, chin
    and nose tip mesh points are kept in `extra` for reference.
    """
    path = resolve_model_path(model_path)
    options = vision.FaceLandmarkerOptions(
        base_options=mp_python.BaseOptions(model_asset_path=path),
        running_mode=vision.RunningMode.IMAGE,
        num_faces=1,
        min_face_detection_confidence=0.5,
        min_face_presence_confidence=0.5,
    )

    # MediaPipe expects RGB
    rgb = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)
    mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))

    with vision.FaceLandmarker.create_from_options(options) as landmarker:
        result = landmarker.detect(mp_image)

    if not result.face_landmarks:
        raise RuntimeError("No face detected. Try a clearer, front-facing photo with good lighting.")

    h, w = image_bgr.shape[:2]
    lm = result.face_landmarks[0]
    if len(lm) <= RIGHT_PUPIL:
        raise RuntimeError("Face landmark model does not provide iris landmarks.")

    def to_px(i: int) -> Point:
        return Point(x=lm[i].x * w, y=lm[i].y * h)

    logger.debug("Detected %d face landmarks", len(lm))
    return LandmarkSet(
        eye_left_pupil=to_px(LEFT_PUPIL),
        eye_right_pupil=to_px(RIGHT_PUPIL),
        lip_left_corner=to_px(LIP_LEFT_CORNER),
        lip_right_corner=to_px(LIP_RIGHT_CORNER),
        extra={
            "forehead": to_px(FOREHEAD),
            "meshChin": to_px(CHIN),
            "noseTip": to_px(NOSE_TIP),
        },
    )

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

MM_PER_INCH = 25.4


def _to_mm(value: float, units: str) -> float:
    units = (units or "mm").lower()
    if units in ("mm", "millimeter", "millimeters"):
        return float(value)
    if units in ("inch", "inches", "in"):
        return float(value) * MM_PER_INCH
    raise ValueError(f"Unsupported units: {units!r} (expected 'mm' or 'inch')")


@dataclass(frozen=True)
class Point:
    """A 2D pixel coordinate. y grows downward, as in image rows."""
    x: float
    y: float

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Point":
        return Point(x=float(d["x"]), y=float(d["y"]))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    def midpoint(self, other: "Point") -> "Point":
        return Point((self.x + other.x) / 2.0, (self.y + other.y) / 2.0)

    def distance(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


# attribute name -> JSON name
_LANDMARK_FIELDS = {
    "eye_left_pupil": "eyeLeftPupil",
    "eye_right_pupil": "eyeRightPupil",
    "lip_left_corner": "lipLeftCorner",
    "lip_right_corner": "lipRightCorner",
    "crown_point": "crownPoint",
    "chin_point": "chinPoint",
}


@dataclass
class LandmarkSet:
    """
    Facial landmarks of a single image, in source pixels.

    The detector fills the eye/lip points (and anything else it knows about in
    `extra`); the crown/chin estimator writes `crown_point` and `chin_point`.
    """
    eye_left_pupil: Optional[Point] = None
    eye_right_pupil: Optional[Point] = None
    lip_left_corner: Optional[Point] = None
    lip_right_corner: Optional[Point] = None
    crown_point: Optional[Point] = None
    chin_point: Optional[Point] = None
    extra: Dict[str, Point] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, key in _LANDMARK_FIELDS.items():
            p = getattr(self, attr)
            if p is not None:
                out[key] = p.to_dict()
        for key, p in self.extra.items():
            out[key] = p.to_dict()
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "LandmarkSet":
        known = {key: attr for attr, key in _LANDMARK_FIELDS.items()}
        lm = LandmarkSet()
        for key, value in d.items():
            if value is None:
                continue
            if key in known:
                setattr(lm, known[key], Point.from_dict(value))
            else:
                lm.extra[key] = Point.from_dict(value)
        return lm


@dataclass(frozen=True)
class EstimatorCoefficients:
    """
    Anthropometric ratios used by the crown/chin estimator.

    chin_frown_coeff:
        mouth-to-chin distance / frown-to-mouth distance.
    chin_crown_coeff:
        crown-to-chin distance / frown-to-chin distance.
    """
    chin_crown_coeff: float = 1.7699
    chin_frown_coeff: float = 0.8945

    def updated(self, options: Optional[Mapping[str, Any]]) -> "EstimatorCoefficients":
        """Copy with `chinCrownCoeff` / `chinFrownCoeff` overridden when present."""
        if not options:
            return self
        changes: Dict[str, float] = {}
        if options.get("chinCrownCoeff") is not None:
            changes["chin_crown_coeff"] = float(options["chinCrownCoeff"])
        if options.get("chinFrownCoeff") is not None:
            changes["chin_frown_coeff"] = float(options["chinFrownCoeff"])
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class PhotoStandard:
    """
    Target identity-photo specification.

    photo_width_mm / photo_height_mm:
        Physical size of the printed photo.
    face_height_mm:
        Required crown-to-chin height on the printed photo.
    crown_top_mm:
        Distance from the top edge of the photo to the crown. None centers the
        head vertically.
    face_center_ratio:
        Horizontal position of the facial axis as a fraction of photo width.
    resolution_dpi:
        Pixel density of the cropped photo; fixes width_px / height_px.
    """
    photo_width_mm: float
    photo_height_mm: float
    face_height_mm: float
    crown_top_mm: Optional[float] = None
    face_center_ratio: float = 0.5
    resolution_dpi: float = 300.0
    name: str = ""

    def __post_init__(self) -> None:
        if self.photo_width_mm <= 0 or self.photo_height_mm <= 0:
            raise ValueError("Photo dimensions must be > 0")
        if self.face_height_mm <= 0:
            raise ValueError("Face height must be > 0")
        if self.face_height_mm > self.photo_height_mm:
            raise ValueError("Face height cannot exceed photo height")
        if self.resolution_dpi <= 0:
            raise ValueError("Resolution must be > 0")
        if not (0.0 < self.face_center_ratio < 1.0):
            raise ValueError("face_center_ratio must be between 0 and 1")
        if self.crown_top_mm is not None:
            if self.crown_top_mm < 0 or self.crown_top_mm + self.face_height_mm > self.photo_height_mm:
                raise ValueError("crown_top_mm leaves no room for the face inside the photo")

    @property
    def width_px(self) -> int:
        return max(1, int(round(self.photo_width_mm / MM_PER_INCH * self.resolution_dpi)))

    @property
    def height_px(self) -> int:
        return max(1, int(round(self.photo_height_mm / MM_PER_INCH * self.resolution_dpi)))

    @property
    def required_ratio(self) -> float:
        return self.face_height_mm / self.photo_height_mm

    @property
    def crown_top_ratio(self) -> float:
        """Crown offset from the top edge as a fraction of photo height."""
        if self.crown_top_mm is None:
            return (1.0 - self.required_ratio) / 2.0
        return self.crown_top_mm / self.photo_height_mm

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "PhotoStandard":
        units = d.get("units", "mm")
        crown_top = d.get("crownTop")
        return PhotoStandard(
            photo_width_mm=_to_mm(d["pictureWidth"], units),
            photo_height_mm=_to_mm(d["pictureHeight"], units),
            face_height_mm=_to_mm(d["faceHeight"], units),
            crown_top_mm=_to_mm(crown_top, units) if crown_top is not None else None,
            face_center_ratio=float(d.get("faceCenter", 0.5)),
            resolution_dpi=float(d.get("resolution", 300.0)),
            name=str(d.get("name", "")),
        )


@dataclass(frozen=True)
class CanvasDefinition:
    """Print sheet: physical size, pixel density and the gap between copies."""
    width_mm: float
    height_mm: float
    resolution_ppmm: float
    border_mm: float = 0.0
    name: str = ""

    def __post_init__(self) -> None:
        if self.width_mm <= 0 or self.height_mm <= 0:
            raise ValueError("Canvas dimensions must be > 0")
        if self.resolution_ppmm <= 0:
            raise ValueError("Canvas resolution must be > 0")
        if self.border_mm < 0:
            raise ValueError("Canvas border must be >= 0")

    @property
    def width_px(self) -> int:
        return int(round(self.width_mm * self.resolution_ppmm))

    @property
    def height_px(self) -> int:
        return int(round(self.height_mm * self.resolution_ppmm))

    @property
    def resolution_dpi(self) -> float:
        return self.resolution_ppmm * MM_PER_INCH

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "CanvasDefinition":
        units = d.get("units", "mm")
        return CanvasDefinition(
            width_mm=_to_mm(d["width"], units),
            height_mm=_to_mm(d["height"], units),
            resolution_ppmm=float(d.get("resolution", 300.0)) / MM_PER_INCH,
            border_mm=_to_mm(d.get("border", 0.0), units),
            name=str(d.get("name", "")),
        )


PHOTO_STANDARDS: Dict[str, PhotoStandard] = {
    "us": PhotoStandard(50.8, 50.8, face_height_mm=30.0, crown_top_mm=7.0, name="US passport 2x2in"),
    "schengen": PhotoStandard(35.0, 45.0, face_height_mm=34.0, crown_top_mm=4.0, name="Schengen visa 35x45mm"),
    "uk": PhotoStandard(35.0, 45.0, face_height_mm=32.0, crown_top_mm=5.0, name="UK passport 35x45mm"),
    "canada": PhotoStandard(50.0, 70.0, face_height_mm=34.0, name="Canada passport 50x70mm"),
}

CANVASES: Dict[str, CanvasDefinition] = {
    "4x6in": CanvasDefinition(152.4, 101.6, resolution_ppmm=300 / MM_PER_INCH, name="4x6in @ 300dpi"),
    "5x7in": CanvasDefinition(177.8, 127.0, resolution_ppmm=300 / MM_PER_INCH, name="5x7in @ 300dpi"),
    "a4": CanvasDefinition(210.0, 297.0, resolution_ppmm=300 / MM_PER_INCH, border_mm=2.0, name="A4 @ 300dpi"),
}

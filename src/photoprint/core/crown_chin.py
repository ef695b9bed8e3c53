from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from photoprint.core.models import EstimatorCoefficients, LandmarkSet, Point

logger = logging.getLogger(__name__)


class EstimationFailure(enum.Enum):
    MISSING_LANDMARKS = "missing_landmarks"
    DEGENERATE_GEOMETRY = "degenerate_geometry"


@dataclass(frozen=True)
class CrownChinEstimate:
    """Outcome of a crown/chin estimate. Points are set only when ok."""
    ok: bool
    reason: Optional[EstimationFailure] = None
    crown_point: Optional[Point] = None
    chin_point: Optional[Point] = None

    @staticmethod
    def failure(reason: EstimationFailure) -> "CrownChinEstimate":
        return CrownChinEstimate(ok=False, reason=reason)


@dataclass(frozen=True)
class CrownChinEstimator:
    """
    Estimates crown and chin from the pupils and lip corners.

    The frown point (between the pupils) is the anchor; the frown-to-mouth
    distance is the reference length. Along the face axis (frown -> mouth):

      chin  = mouth + axis * chin_frown_coeff * |mouth - frown|
      crown = chin  - axis * chin_crown_coeff * |chin - frown|

    Instances are immutable; `configure` returns a new estimator.
    """
    coefficients: EstimatorCoefficients = field(default_factory=EstimatorCoefficients)

    def configure(self, options: Optional[Mapping[str, Any]]) -> "CrownChinEstimator":
        return CrownChinEstimator(self.coefficients.updated(options))

    def estimate(self, landmarks: LandmarkSet) -> CrownChinEstimate:
        required = (
            landmarks.eye_left_pupil,
            landmarks.eye_right_pupil,
            landmarks.lip_left_corner,
            landmarks.lip_right_corner,
        )
        if any(p is None for p in required):
            return CrownChinEstimate.failure(EstimationFailure.MISSING_LANDMARKS)

        frown = landmarks.eye_left_pupil.midpoint(landmarks.eye_right_pupil)
        mouth = landmarks.lip_left_corner.midpoint(landmarks.lip_right_corner)
        ref_dist = frown.distance(mouth)
        if not math.isfinite(ref_dist) or ref_dist <= 0:
            return CrownChinEstimate.failure(EstimationFailure.DEGENERATE_GEOMETRY)

        ux = (mouth.x - frown.x) / ref_dist
        uy = (mouth.y - frown.y) / ref_dist

        c = self.coefficients
        mouth_chin = c.chin_frown_coeff * ref_dist
        chin = Point(mouth.x + ux * mouth_chin, mouth.y + uy * mouth_chin)
        crown_chin = c.chin_crown_coeff * frown.distance(chin)
        crown = Point(chin.x - ux * crown_chin, chin.y - uy * crown_chin)

        # Upside-down faces and non-positive coefficients end up here.
        if not chin.y > crown.y:
            return CrownChinEstimate.failure(EstimationFailure.DEGENERATE_GEOMETRY)
        return CrownChinEstimate(ok=True, crown_point=crown, chin_point=chin)

    def estimate_crown_chin(self, landmarks: LandmarkSet) -> bool:
        """Write crown/chin into `landmarks`. Returns False (and writes nothing) on failure."""
        result = self.estimate(landmarks)
        if not result.ok:
            logger.debug("Crown/chin estimation failed: %s", result.reason.value)
            return False
        landmarks.crown_point = result.crown_point
        landmarks.chin_point = result.chin_point
        return True

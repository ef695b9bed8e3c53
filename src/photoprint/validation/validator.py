from __future__ import annotations

from typing import List, Sequence

import numpy as np

from photoprint.core.models import PhotoStandard, Point
from photoprint.core.print_maker import CropWindow
from photoprint.validation.report import RuleResult, ValidationReport

HEAD_RATIO_TOLERANCE_PX = 1.0
CENTERING_TOLERANCE = 0.02  # fraction of photo width
MAX_PADDING_FRACTION = 0.05


def validate_cropped_photo(
    cropped: np.ndarray,
    standard: PhotoStandard,
    window: CropWindow,
    crown_point: Point,
    chin_point: Point,
    source_shape: Sequence[int],
) -> ValidationReport:
    """
    Check a cropped photo against its standard.

    Crown and chin are mapped from source pixels through the crop window, so
    no second landmark detection is needed.
    """
    results: List[RuleResult] = []
    H, W = cropped.shape[0], cropped.shape[1]

    # Rule: Size
    size_ok = (W == standard.width_px) and (H == standard.height_px)
    results.append(
        RuleResult(
            rule_id="Size",
            passed=size_ok,
            message=f"{W}x{H} pixels (expected {standard.width_px}x{standard.height_px}).",
            metrics={"width": W, "height": H, "expected": [standard.width_px, standard.height_px]},
        )
    )

    crown = window.to_output(crown_point, W, H)
    chin = window.to_output(chin_point, W, H)

    # Rule: Head ratio
    head_px = abs(chin.y - crown.y)
    target_px = standard.required_ratio * H
    ok = abs(head_px - target_px) <= HEAD_RATIO_TOLERANCE_PX
    msg = f"Crown-chin {head_px:.1f}px of {H}px (target {target_px:.1f}px)."
    results.append(
        RuleResult(
            rule_id="Head ratio",
            passed=ok,
            message=msg,
            metrics={"head_px": head_px, "target_px": target_px, "ratio": head_px / H if H else 0.0},
        )
    )

    # Rule: Centering (facial axis near the standard's horizontal position)
    axis_x = (crown.x + chin.x) / 2.0
    expected_x = standard.face_center_ratio * W
    dx = axis_x - expected_x
    tol = CENTERING_TOLERANCE * W
    ok = abs(dx) <= tol
    msg = f"Face axis offset {dx:+.0f}px (tolerance ±{tol:.0f}px)."
    if not ok:
        msg += " The source image is too narrow to center the face."
    results.append(
        RuleResult(
            rule_id="Centering",
            passed=ok,
            message=msg,
            metrics={"axis_x": axis_x, "expected_x": expected_x, "dx_px": dx, "tolerance_px": tol},
        )
    )

    # Rule: Padding (crop window outside the source)
    pad = window.padding_fraction(int(source_shape[1]), int(source_shape[0]))
    ok = pad <= MAX_PADDING_FRACTION
    msg = f"{pad*100:.1f}% of the photo is fill outside the source (limit {MAX_PADDING_FRACTION*100:.0f}%)."
    if not ok:
        msg += " Use a photo with more space around the head."
    results.append(
        RuleResult(
            rule_id="Padding",
            passed=ok,
            message=msg,
            metrics={"padding_fraction": pad},
        )
    )

    passed = all(r.passed for r in results)
    return ValidationReport(passed=passed, results=results)


def format_report_text(report: ValidationReport) -> str:
    lines: List[str] = []
    lines.append("Photo Print Validation Report")
    lines.append("-" * 30)
    lines.append(f"Overall: {'PASS' if report.passed else 'FAIL'}")
    lines.append("")
    for r in report.results:
        mark = "✅" if r.passed else "❌"
        lines.append(f"{mark} {r.rule_id}: {r.message}")
    return "\n".join(lines)

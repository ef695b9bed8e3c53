import unittest

import numpy as np

from tests._test_path import SRC  # noqa: F401

from photoprint.core.models import PhotoStandard, Point
from photoprint.core.print_maker import compute_crop_window, crop_picture
from photoprint.validation import validator as v

STANDARD = PhotoStandard(35.0, 45.0, face_height_mm=34.0, crown_top_mm=4.0)


def _validate(shape, crown: Point, chin: Point):
    img = np.full(shape, 128, dtype=np.uint8)
    cropped = crop_picture(img, crown, chin, STANDARD)
    window = compute_crop_window(img.shape, crown, chin, STANDARD)
    return v.validate_cropped_photo(cropped, STANDARD, window, crown, chin, img.shape)


class TestValidator(unittest.TestCase):
    def test_well_framed_photo_passes(self):
        report = _validate((2000, 2000, 3), Point(1000, 600), Point(1000, 1100))
        self.assertEqual([r.rule_id for r in report.results], ["Size", "Head ratio", "Centering", "Padding"])
        self.assertTrue(report.passed, v.format_report_text(report))
        self.assertAlmostEqual(
            report.rule("Head ratio").metrics["head_px"],
            STANDARD.required_ratio * STANDARD.height_px,
            places=6,
        )

    def test_head_near_top_edge_flags_padding(self):
        report = _validate((2000, 2000, 3), Point(1000, 20), Point(1000, 520))
        self.assertFalse(report.passed)
        self.assertFalse(report.rule("Padding").passed)
        self.assertTrue(report.rule("Head ratio").passed)
        self.assertTrue(report.rule("Centering").passed)

    def test_clamped_window_flags_centering(self):
        report = _validate((2000, 2000, 3), Point(100, 600), Point(100, 1100))
        self.assertFalse(report.rule("Centering").passed)
        self.assertTrue(report.rule("Padding").passed)

    def test_wrong_size_fails(self):
        crown, chin = Point(1000, 600), Point(1000, 1100)
        window = compute_crop_window((2000, 2000, 3), crown, chin, STANDARD)
        small = np.zeros((100, 80, 3), dtype=np.uint8)
        report = v.validate_cropped_photo(small, STANDARD, window, crown, chin, (2000, 2000, 3))
        self.assertFalse(report.rule("Size").passed)

    def test_format_report_text(self):
        report = _validate((2000, 2000, 3), Point(1000, 20), Point(1000, 520))
        txt = v.format_report_text(report)
        self.assertIn("Photo Print Validation Report", txt)
        self.assertIn("Overall: FAIL", txt)
        self.assertIn("Padding:", txt)


class TestValidatorMatchesOutput(unittest.TestCase):
    def test_reported_span_matches_measured_span(self):
        img = np.full((200, 200, 3), 128, dtype=np.uint8)
        img[59:62, :, 2] = 255
        img[89:92, :, 2] = 255
        crown, chin = Point(100, 60.4), Point(100, 90.4)

        window = compute_crop_window(img.shape, crown, chin, STANDARD)
        cropped = crop_picture(img, crown, chin, STANDARD, window=window)
        report = v.validate_cropped_photo(cropped, STANDARD, window, crown, chin, img.shape)

        red = cropped[:, :, 2].astype(np.float64).mean(axis=1) - 128
        red = np.clip(red, 0, None)
        rows = np.arange(cropped.shape[0])
        half = cropped.shape[0] // 2
        crown_y = (red[:half] * rows[:half]).sum() / red[:half].sum()
        chin_y = (red[half:] * rows[half:]).sum() / red[half:].sum()

        reported = report.rule("Head ratio").metrics["head_px"]
        self.assertLessEqual(abs(reported - (chin_y - crown_y)), 1.0)
        self.assertTrue(report.rule("Head ratio").passed)

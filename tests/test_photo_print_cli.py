import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import skipIf
from unittest.mock import patch

from PIL import Image

from tests._test_path import SRC  # noqa: F401

import photo_print
from photoprint.core.models import CANVASES, PHOTO_STANDARDS, LandmarkSet, Point
from photoprint.core.png_chunks import read_resolution


class TestPhotoPrintCli(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.input = os.path.join(self.tmp.name, "in.jpg")
        Image.new("RGB", (1200, 1600), (150, 140, 130)).save(self.input, format="JPEG")
        self.output = os.path.join(self.tmp.name, "out.png")

    def _run(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = photo_print.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_sheet_with_explicit_points(self):
        code, out, _ = self._run(
            "-i", self.input, "-o", self.output, "--standard", "us", "--canvas", "4x6in",
            "--crown", "600", "400", "--chin", "600", "1000",
        )
        self.assertEqual(code, 0)
        self.assertIn("Saved:", out)
        self.assertIn("Validation Report", out)
        with open(self.output, "rb") as f:
            png = f.read()
        self.assertEqual(read_resolution(png), (11811, 11811, 1))
        with Image.open(self.output) as img:
            self.assertEqual(img.size, (1800, 1200))

    def test_crop_only(self):
        code, _, _ = self._run(
            "-i", self.input, "-o", self.output, "--crop-only",
            "--crown", "600", "400", "--chin", "600", "1000",
        )
        self.assertEqual(code, 0)
        ps = PHOTO_STANDARDS["us"]
        with Image.open(self.output) as img:
            self.assertEqual(img.size, (ps.width_px, ps.height_px))

    def test_standard_from_json_file(self):
        path = os.path.join(self.tmp.name, "std.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"pictureWidth": 30, "pictureHeight": 40, "faceHeight": 28, "resolution": 200}, f)
        std = photo_print._resolve_standard(path)
        self.assertEqual(std.face_height_mm, 28.0)
        self.assertIs(photo_print._resolve_standard("schengen"), PHOTO_STANDARDS["schengen"])

    def test_crown_without_chin_is_an_error(self):
        code, _, err = self._run("-i", self.input, "-o", self.output, "--crown", "1", "2")
        self.assertEqual(code, 2)
        self.assertIn("ERROR", err)

    def test_missing_input_reports_error(self):
        code, _, err = self._run(
            "-i", os.path.join(self.tmp.name, "missing.jpg"), "-o", self.output,
            "--crown", "600", "400", "--chin", "600", "1000",
        )
        self.assertEqual(code, 2)
        self.assertIn("ERROR:", err)


def _can_import_face_mesh() -> bool:
    try:
        import photoprint.detection.face_mesh  # noqa: F401
        return True
    except Exception:
        return False


class TestProcessPhotoPrint(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.input = os.path.join(self.tmp.name, "in.png")
        Image.new("RGB", (1200, 1600), (150, 140, 130)).save(self.input, format="PNG")
        self.output = os.path.join(self.tmp.name, "out.png")

    def test_crop_window_computed_once(self):
        from photoprint.core import print_maker

        with patch.object(photo_print, "compute_crop_window", wraps=print_maker.compute_crop_window) as cli_cw, \
                patch.object(print_maker, "compute_crop_window", wraps=print_maker.compute_crop_window) as core_cw:
            photo_print.process_photo_print(
                self.input, self.output, PHOTO_STANDARDS["us"], CANVASES["4x6in"],
                crown_point=Point(600, 400), chin_point=Point(600, 1000), crop_only=True,
            )
        self.assertEqual(cli_cw.call_count + core_cw.call_count, 1)
        with open(self.output, "rb") as f:
            self.assertEqual(read_resolution(f.read()), (11811, 11811, 1))

    @skipIf(not _can_import_face_mesh(), "face_mesh dependencies (mediapipe) not available")
    def test_detects_crown_and_chin_when_not_given(self):
        import photoprint.detection.face_mesh as fm

        def stub_detect(_img, _model_path):
            return LandmarkSet(
                eye_left_pupil=Point(560, 700),
                eye_right_pupil=Point(640, 700),
                lip_left_corner=Point(580, 860),
                lip_right_corner=Point(620, 860),
            )

        with patch.object(fm, "detect_landmarks", new=stub_detect):
            code = photo_print.main(["-i", self.input, "-o", self.output, "--crop-only"])
        self.assertEqual(code, 0)
        ps = PHOTO_STANDARDS["us"]
        with Image.open(self.output) as img:
            self.assertEqual(img.size, (ps.width_px, ps.height_px))

    @skipIf(not _can_import_face_mesh(), "face_mesh dependencies (mediapipe) not available")
    def test_unusable_landmarks_report_error(self):
        import photoprint.detection.face_mesh as fm

        with patch.object(fm, "detect_landmarks", new=lambda _img, _path: LandmarkSet()):
            with redirect_stderr(io.StringIO()) as err, redirect_stdout(io.StringIO()):
                code = photo_print.main(["-i", self.input, "-o", self.output])
        self.assertEqual(code, 2)
        self.assertIn("missing_landmarks", err.getvalue())

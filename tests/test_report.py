import unittest
from dataclasses import FrozenInstanceError

from tests._test_path import SRC  # noqa: F401

from photoprint.validation.report import RuleResult, ValidationReport


class TestValidationReport(unittest.TestCase):
    def test_report_is_frozen(self):
        rr = RuleResult(rule_id="Size", passed=True, message="ok", metrics={"a": 1})
        rep = ValidationReport(passed=True, results=[rr])

        self.assertTrue(rep.passed)
        self.assertEqual(rep.rule("Size"), rr)

        with self.assertRaises(FrozenInstanceError):
            rep.passed = False  # type: ignore[misc]

    def test_failures_and_lookup(self):
        ok = RuleResult(rule_id="Size", passed=True, message="ok")
        bad = RuleResult(rule_id="Padding", passed=False, message="too much fill")
        rep = ValidationReport(passed=False, results=[ok, bad])
        self.assertEqual(rep.failures, [bad])
        with self.assertRaises(KeyError):
            rep.rule("Lighting")

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RuleResult:
    """
    Outcome of one check on a cropped photo.
    """
    rule_id: str
    passed: bool
    message: str
    metrics: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationReport:
    """
    All rule outcomes for one cropped photo; `passed` only if every rule passed.
    """
    passed: bool
    results: list[RuleResult]

    @property
    def failures(self) -> list[RuleResult]:
        return [r for r in self.results if not r.passed]

    def rule(self, rule_id: str) -> RuleResult:
        for r in self.results:
            if r.rule_id == rule_id:
                return r
        raise KeyError(f"Rule not found: {rule_id}")

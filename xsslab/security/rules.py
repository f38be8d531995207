"""
Payload classifier.

Each rule is (trigger substrings, severity, tag). Rules are checked top to
bottom and the first rule with a trigger present in the payload wins, so the
order of ``RULES`` is part of the behaviour. Matching is plain, case-sensitive
substring search: ``<SCRIPT>`` does not trigger the script rule.
"""
from __future__ import annotations

import enum
from typing import NamedTuple, Tuple


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown severity: {value!r}") from None


_RANKS = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}

# reporting order for severity breakdowns
SEVERITY_ORDER: Tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
)

TAG_NONE = "none"


class Rule(NamedTuple):
    triggers: Tuple[str, ...]
    severity: Severity
    tag: str

    def matches(self, payload: str) -> bool:
        return any(t in payload for t in self.triggers)


class Classification(NamedTuple):
    severity: Severity
    tag: str


RULES: Tuple[Rule, ...] = (
    Rule(("document.cookie", "localStorage"), Severity.CRITICAL, "credential-exfiltration"),
    Rule(("<script>",), Severity.HIGH, "script-injection"),
    Rule(("onerror=", "onload=", "onmouseover="), Severity.HIGH, "event-handler"),
    Rule(("alert", "prompt"), Severity.MEDIUM, "proof-of-concept"),
    Rule(("javascript:",), Severity.HIGH, "script-url"),
    Rule(("eval(",), Severity.HIGH, "eval-call"),
)

DEFAULT = Classification(Severity.LOW, TAG_NONE)


def classify(payload: str | None) -> Classification:
    if not payload:
        return DEFAULT
    for rule in RULES:
        if rule.matches(payload):
            return Classification(rule.severity, rule.tag)
    return DEFAULT


def is_attack_pattern(payload: str | None) -> bool:
    return classify(payload).tag != TAG_NONE

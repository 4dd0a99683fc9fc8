"""Label filter parsing and matching logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping

ALLOW_ANY = "*"
ALLOW_OMITTED = "_"
DENY_PREFIX = "!"


@dataclass(frozen=True)
class LabelRule:
    """Admission criteria for a single label."""

    allowed: frozenset = frozenset()
    denied: frozenset = frozenset()
    allow_any: bool = False
    allow_omitted: bool = False

    def is_empty(self) -> bool:
        return not (self.allowed or self.denied or self.allow_any or self.allow_omitted)

    def members(self) -> List[str]:
        """Return the rule as the command tokens that would produce it."""

        tokens = sorted(self.allowed)
        if self.allow_any:
            tokens.append(ALLOW_ANY)
        if self.allow_omitted:
            tokens.append(ALLOW_OMITTED)
        tokens.extend(f"{DENY_PREFIX}{value}" for value in sorted(self.denied))
        return tokens


def parse_label_rule(members: List[str]) -> LabelRule:
    """Classify ``=``-separated members of one field into a rule."""

    allowed = set()
    denied = set()
    allow_any = False
    allow_omitted = False
    for member in members:
        if not member:
            continue
        if member == ALLOW_ANY:
            allow_any = True
        elif member == ALLOW_OMITTED:
            allow_omitted = True
        elif member.startswith(DENY_PREFIX):
            value = member[len(DENY_PREFIX):]
            if value:
                denied.add(value)
        else:
            allowed.add(member)
    return LabelRule(
        allowed=frozenset(allowed),
        denied=frozenset(denied),
        allow_any=allow_any,
        allow_omitted=allow_omitted,
    )


def parse_filters(text: str) -> Dict[str, LabelRule]:
    """Parse ``key=value1=value2`` fields into per-label rules.

    Fields without ``=`` are ignored, as are fields that leave no usable
    members. A later field for the same label replaces the earlier one. An
    empty result is an open subscription.
    """

    rules: Dict[str, LabelRule] = {}
    for field in text.split():
        if "=" not in field:
            continue
        label, *members = field.split("=")
        if not label:
            continue
        rule = parse_label_rule(members)
        if rule.is_empty():
            continue
        rules[label] = rule
    return rules


def admits(rules: Mapping[str, LabelRule], labels: Mapping[str, str]) -> bool:
    """Return True when every rule-bearing label accepts the label set.

    Evaluation per label:
    - A present value listed in the deny set rejects immediately.
    - An absent label is accepted only with the omitted marker.
    - A present value is accepted with the wildcard or when explicitly allowed.
    Labels without a rule are always permitted.
    """

    for label, rule in rules.items():
        if label not in labels:
            if not rule.allow_omitted:
                return False
            continue

        value = labels[label]
        if value in rule.denied:
            return False
        if rule.allow_any:
            continue
        if value not in rule.allowed:
            return False
    return True


def describe_filters(rules: Mapping[str, LabelRule]) -> str:
    """Human-readable summary used in replies and subscriber listings."""

    if not rules:
        return "Allowed ALL"
    parts = [f"{label}=({'|'.join(rules[label].members())})" for label in sorted(rules)]
    return " & ".join(parts)

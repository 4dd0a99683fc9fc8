from __future__ import annotations

from core.filters import LabelRule, admits, describe_filters, parse_filters


def test_parse_allow_values() -> None:
    rules = parse_filters("severity=critical=warning")
    assert rules == {"severity": LabelRule(allowed=frozenset({"critical", "warning"}))}


def test_parse_deny_value() -> None:
    rules = parse_filters("env=!staging")
    assert rules["env"].denied == frozenset({"staging"})
    assert not rules["env"].allowed
    assert not rules["env"].allow_any


def test_parse_deny_with_wildcard() -> None:
    rule = parse_filters("env=!x=*")["env"]
    assert rule.allow_any
    assert rule.denied == frozenset({"x"})


def test_parse_omitted_marker() -> None:
    rule = parse_filters("team=_")["team"]
    assert rule.allow_omitted
    assert not rule.allowed


def test_parse_ignores_fields_without_equals_and_empty_members() -> None:
    assert parse_filters("") == {}
    assert parse_filters("hello world") == {}
    assert parse_filters("key= =value") == {}
    assert parse_filters("key=!") == {}


def test_parse_last_field_for_label_wins() -> None:
    rules = parse_filters("env=prod env=staging")
    assert rules["env"].allowed == frozenset({"staging"})


def test_parse_multiple_labels() -> None:
    rules = parse_filters("key=a env=b")
    assert set(rules) == {"key", "env"}


def test_open_subscription_admits_everything() -> None:
    assert admits({}, {})
    assert admits({}, {"severity": "critical", "env": "prod"})


def test_allow_values() -> None:
    rules = parse_filters("severity=critical")
    assert admits(rules, {"severity": "critical"})
    assert not admits(rules, {"severity": "warning"})
    assert not admits(rules, {})


def test_unfiltered_labels_are_permitted() -> None:
    rules = parse_filters("severity=critical")
    assert admits(rules, {"severity": "critical", "team": "db"})


def test_allow_omitted_accepts_missing_label_only() -> None:
    rules = parse_filters("team=_")
    assert admits(rules, {"env": "prod"})
    assert not admits(rules, {"team": "db"})


def test_allow_omitted_with_values() -> None:
    rules = parse_filters("team=_=db")
    assert admits(rules, {})
    assert admits(rules, {"team": "db"})
    assert not admits(rules, {"team": "web"})


def test_wildcard_requires_presence() -> None:
    rules = parse_filters("team=*")
    assert admits(rules, {"team": "anything"})
    assert not admits(rules, {})


def test_deny_wins_over_every_allow_directive() -> None:
    for expression in ("env=!x", "env=!x=*", "env=!x=*=_", "env=!x=x"):
        rules = parse_filters(expression)
        assert not admits(rules, {"env": "x"}), expression


def test_deny_alone_denies_all_present_values() -> None:
    rules = parse_filters("env=!x")
    assert not admits(rules, {"env": "y"})
    assert not admits(rules, {})


def test_allow_all_except_value() -> None:
    rules = parse_filters("key=!x=*=_")
    assert admits(rules, {})
    assert admits(rules, {"key": "y"})
    assert not admits(rules, {"key": "x"})


def test_every_label_must_accept() -> None:
    rules = parse_filters("key=a env=b")
    assert admits(rules, {"key": "a", "env": "b"})
    assert not admits(rules, {"key": "a", "env": "c"})


def test_describe_filters() -> None:
    assert describe_filters({}) == "Allowed ALL"
    rules = parse_filters("severity=warning=critical env=!x=*=_")
    assert describe_filters(rules) == "env=(*|_|!x) & severity=(critical|warning)"

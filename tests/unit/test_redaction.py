"""
Tests for the redaction engine.

**Feature: docscope-privacy-redaction**
"""

import logging

import pytest

from docscope.core.redaction import (
    HIGHLIGHT_COLORS,
    PrivacyRule,
    RuleType,
    apply_rule,
    compile_rule,
    redact,
    redact_with_multiple_profiles,
)
from docscope.infrastructure.fakes import InMemoryRuleStore


def _rule(rule_id, rule_type, pattern, replacement, profile_id=1, is_active=True, sequence=None):
    return PrivacyRule(
        id=rule_id,
        profile_id=profile_id,
        type=rule_type,
        pattern=pattern,
        replacement=replacement,
        is_active=is_active,
        sequence=rule_id if sequence is None else sequence,
    )


class TestRedact:
    def test_literal_and_regex_rules(self):
        rules = [
            _rule(1, RuleType.LITERAL, "Acme Corp", "[COMPANY]"),
            _rule(2, RuleType.REGEX, r"\d{3}-\d{4}", "[PHONE]"),
        ]

        assert redact("Call Acme Corp at 555-1234", [rules]) == "Call [COMPANY] at [PHONE]"

    def test_literal_is_case_insensitive_and_escaped(self):
        rules = [_rule(1, RuleType.LITERAL, "a.b (c)", "X")]

        assert redact("A.B (C) and aXb (c)", [rules]) == "X and aXb (c)"

    def test_rules_apply_to_partially_redacted_text(self):
        rules = [
            _rule(1, RuleType.LITERAL, "alice", "bob"),
            _rule(2, RuleType.LITERAL, "bob", "[NAME]"),
        ]

        assert redact("alice and bob", [rules]) == "[NAME] and [NAME]"

    def test_order_is_significant(self):
        first = _rule(1, RuleType.LITERAL, "alice", "bob")
        second = _rule(2, RuleType.LITERAL, "bob", "[NAME]")

        assert redact("alice", [[first, second]]) == "[NAME]"
        assert redact("alice", [[second, first]]) == "bob"

    def test_inactive_rules_are_skipped(self):
        rules = [_rule(1, RuleType.LITERAL, "secret", "[X]", is_active=False)]

        assert redact("secret", [rules]) == "secret"

    def test_group_references_expand(self):
        rules = [_rule(1, RuleType.REGEX, r"(\d{3})-\d{4}", "$1-XXXX")]

        assert redact("call 555-1234", [rules]) == "call 555-XXXX"

    @pytest.mark.parametrize(
        "pattern,replacement,expected",
        [
            (r"(\w+)@example\.com", "[$&]", "mail [joe@example.com] now"),
            (r"(\w+)@example\.com", "$$1", "mail $1 now"),
            (r"(\w+)@example\.com", "$2", "mail $2 now"),
            (r"(\w+)@example\.com", "$10", "mail joe0 now"),
            (r"(?P<user>\w+)@example\.com", "$<user>", "mail joe now"),
            (r"(\w+)@example\.com", "<$`|$'>", "mail <mail | now> now"),
            (r"(\w+)@example\.com", r"\1 at \g<0>", r"mail \1 at \g<0> now"),
        ],
    )
    def test_replacement_tokens(self, pattern, replacement, expected):
        rules = [_rule(1, RuleType.REGEX, pattern, replacement)]

        assert redact("mail joe@example.com now", [rules]) == expected

    def test_unmatched_optional_group_is_empty(self):
        rules = [_rule(1, RuleType.REGEX, r"id(-x)?(\d+)", "[$1$2]")]

        assert redact("id42", [rules]) == "[42]"

    def test_tokens_expand_inside_html_spans(self):
        rules = [_rule(3, RuleType.REGEX, r"(\d{3})-\d{4}", "$1-XXXX")]

        result = redact("call 555-1234", [rules], as_html=True)

        assert ">555-XXXX</span>" in result

    def test_malformed_regex_is_skipped(self, caplog):
        rules = [
            _rule(1, RuleType.REGEX, "(unclosed", "[BAD]"),
            _rule(2, RuleType.LITERAL, "plan", "[REDACTED]"),
        ]

        with caplog.at_level(logging.ERROR):
            result = redact("the (unclosed plan", [rules])

        assert result == "the (unclosed [REDACTED]"
        assert any("Skipping redaction rule 1" in r.message for r in caplog.records)

    def test_empty_literal_matches_nothing(self):
        rules = [_rule(1, RuleType.LITERAL, "", "[X]")]

        assert redact("unchanged", [rules]) == "unchanged"

    def test_no_rule_sets(self):
        assert redact("text", []) == "text"


class TestPresets:
    def test_email_preset(self):
        rule = _rule(1, RuleType.EMAIL, "", "[EMAIL]")

        assert apply_rule("write to jane.doe@example.org now", rule) == "write to [EMAIL] now"

    def test_ipv4_preset(self):
        rule = _rule(1, RuleType.IPV4, "", "[IP]")

        assert apply_rule("host 192.168.0.12 up", rule) == "host [IP] up"

    def test_preset_with_own_pattern(self):
        rule = _rule(1, RuleType.EMAIL, r"\w+@corp\.local", "[INTERNAL]")

        assert apply_rule("a@corp.local b@example.org", rule) == "[INTERNAL] b@example.org"

    def test_compile_rule_returns_none_for_empty_literal(self):
        assert compile_rule(_rule(1, RuleType.LITERAL, "", "x")) is None


class TestHtmlMode:
    def test_escapes_text_and_wraps_replacement(self):
        rule = _rule(7, RuleType.LITERAL, "secret", "<hidden>", profile_id=3)

        result = redact("<b>secret</b>", [[rule]], as_html=True)

        assert result.startswith("&lt;b&gt;<span ")
        assert "data-rule-id='7'" in result
        assert "data-profile-id='3'" in result
        assert "class='redacted-text'" in result
        assert "&lt;hidden&gt;</span>" in result
        assert HIGHLIGHT_COLORS[7 % len(HIGHLIGHT_COLORS)] in result
        assert result.endswith("&lt;/b&gt;")


class TestMultipleProfiles:
    def test_profiles_apply_in_given_order(self):
        store = InMemoryRuleStore()
        store.add_rule(_rule(1, RuleType.LITERAL, "alice", "bob", profile_id=10))
        store.add_rule(_rule(2, RuleType.LITERAL, "bob", "[NAME]", profile_id=20))

        assert redact_with_multiple_profiles("alice", [10, 20], store) == "[NAME]"
        assert redact_with_multiple_profiles("alice", [20, 10], store) == "bob"

    def test_rules_follow_sequence_within_profile(self):
        store = InMemoryRuleStore()
        store.add_rule(_rule(1, RuleType.LITERAL, "bob", "[NAME]", sequence=2))
        store.add_rule(_rule(2, RuleType.LITERAL, "alice", "bob", sequence=1))

        assert redact_with_multiple_profiles("alice", [1], store) == "[NAME]"

    def test_no_profiles_returns_text(self):
        store = InMemoryRuleStore()

        assert redact_with_multiple_profiles("a < b", [], store) == "a < b"
        assert redact_with_multiple_profiles("a < b", [], store, as_html=True) == "a &lt; b"

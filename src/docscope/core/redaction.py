"""
Privacy redaction engine.

Rewrites text through ordered literal/regex rules grouped into profiles.
Rules are applied sequentially: the output of one rule is the input of
the next, so rule order is significant and preserved exactly as stored.
"""

import html
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)


class RuleType(str, Enum):
    """Kinds of redaction rule."""

    LITERAL = "LITERAL"
    REGEX = "REGEX"
    EMAIL = "EMAIL"
    IBAN = "IBAN"
    IPV4 = "IPV4"
    PHONE = "PHONE"


# Built-in patterns for preset rule types, used when the rule has no pattern
PRESET_PATTERNS: dict[RuleType, str] = {
    RuleType.EMAIL: r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
    RuleType.IBAN: r"[A-Z]{2}\d{2}[A-Z0-9]{4}\d{7}([A-Z0-9]?){0,16}",
    RuleType.IPV4: (
        r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
        r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b"
    ),
    RuleType.PHONE: (
        r"(?:(?:phone|tel|mobile|mobil|telefon)\s*[:\-]?\s*)"
        r"(?:\+?49|0)(?:\s*\d{2,5}\s*)(?:\d{3,9})"
    ),
}

HIGHLIGHT_COLORS: tuple[str, ...] = (
    "#228be6",
    "#fa5252",
    "#be4bdb",
    "#12b886",
    "#fab005",
    "#fd7e14",
    "#7950f2",
    "#40c057",
    "#15aabf",
    "#e64980",
    "#82c91e",
    "#4c6ef5",
)


@dataclass
class PrivacyRule:
    """A single redaction rule belonging to one profile."""

    id: int
    profile_id: int
    type: RuleType
    pattern: str
    replacement: str
    is_active: bool = True
    sequence: int = 0


class RuleStoreInterface(ABC):
    """Source of redaction rules, ordered by sequence within a profile."""

    @abstractmethod
    def get_rules(self, profile_id: int) -> list[PrivacyRule]:
        """Return the rules of a profile ordered by sequence."""
        pass


def compile_rule(rule: PrivacyRule) -> Optional[re.Pattern[str]]:
    """
    Compile a rule into a case-insensitive pattern.

    Returns None for rules that have nothing to match. Raises re.error
    for malformed regular expressions.
    """
    rule_type = RuleType(rule.type)
    pattern = rule.pattern or ""

    if rule_type == RuleType.LITERAL:
        if not pattern:
            return None
        return re.compile(re.escape(pattern), re.IGNORECASE)

    if rule_type in PRESET_PATTERNS and not pattern:
        pattern = PRESET_PATTERNS[rule_type]
    if not pattern:
        return None
    return re.compile(pattern, re.IGNORECASE)


def _rule_color(rule_id: int) -> str:
    return HIGHLIGHT_COLORS[abs(rule_id) % len(HIGHLIGHT_COLORS)]


def _html_replacement(rule: PrivacyRule) -> str:
    color = _rule_color(rule.id)
    style = (
        f"color: {color}; font-weight: bold; background: {color}1A; padding: 0 2px; "
        f"border-radius: 2px; border: 1px solid {color}33; cursor: pointer;"
    )
    return (
        f"<span style='{style}' data-rule-id='{rule.id}' "
        f"data-profile-id='{rule.profile_id}' class='redacted-text'>"
        f"{html.escape(rule.replacement)}</span>"
    )


# $$, $&, $`, $', $1..$99 and $<name>, as in JavaScript String.replace
_REPLACEMENT_TOKEN = re.compile(r"\$(?:(\$)|(&)|(`)|(')|(\d\d?)|<([^>]*)>)")


def expand_replacement(template: str, match: re.Match[str]) -> str:
    """
    Expand substitution tokens in a replacement string for one match.

    Group references that do not exist stay literal; groups that did not
    participate in the match expand to an empty string.
    """
    if "$" not in template:
        return template
    group_count = match.re.groups
    named_groups = match.re.groupindex

    def expand(token: re.Match[str]) -> str:
        dollar, whole, before, after, digits, name = token.groups()
        if dollar:
            return "$"
        if whole:
            return match.group(0)
        if before:
            return match.string[: match.start()]
        if after:
            return match.string[match.end():]
        if digits:
            if len(digits) == 2 and 1 <= int(digits) <= group_count:
                return match.group(int(digits)) or ""
            first = int(digits[0])
            if 1 <= first <= group_count:
                return (match.group(first) or "") + digits[1:]
            return token.group(0)
        if not named_groups:
            return token.group(0)
        return (match.group(name) or "") if name in named_groups else ""

    return _REPLACEMENT_TOKEN.sub(expand, template)


def apply_rule(text: str, rule: PrivacyRule, as_html: bool = False) -> str:
    """Apply one rule to text. Malformed patterns leave the text unchanged."""
    try:
        compiled = compile_rule(rule)
    except (re.error, ValueError, OverflowError) as e:
        logger.error(f"Skipping redaction rule {rule.id}: {e}")
        return text

    if compiled is None:
        return text

    template = _html_replacement(rule) if as_html else rule.replacement
    return compiled.sub(lambda match: expand_replacement(template, match), text)


def redact(
    text: str,
    rule_sets: Sequence[Iterable[PrivacyRule]],
    as_html: bool = False,
) -> str:
    """
    Redact text through ordered rule sets.

    Args:
        text: Text to redact
        rule_sets: One rule list per profile, in caller order. Each list
            must already be in stored sequence order.
        as_html: Escape the text and wrap replacements in highlight spans

    Returns:
        The redacted text
    """
    result = html.escape(text) if as_html else text
    for rules in rule_sets:
        for rule in rules:
            if not rule.is_active:
                continue
            result = apply_rule(result, rule, as_html=as_html)
    return result


def redact_with_multiple_profiles(
    text: str,
    profile_ids: Sequence[int],
    rule_store: RuleStoreInterface,
    as_html: bool = False,
) -> str:
    """
    Redact text with the active rules of several profiles.

    Rules are flattened in profile order, then rule order, and run
    through the same sequential pipeline as redact().
    """
    if not profile_ids:
        return html.escape(text) if as_html else text
    rule_sets = [rule_store.get_rules(profile_id) for profile_id in profile_ids]
    return redact(text, rule_sets, as_html=as_html)

"""FUNNELBOARD — Funnel Filter Engine.

Decides whether an ad record belongs to a funnel by evaluating the
funnel's rule set against the record's identity fields.

Rule sets arrive in two shapes (a flat rule list meaning AND, or one
AND/OR group) and from two places (pydantic models or stored JSON).
normalize_rules() folds all of them into a single RuleSet so matching
has one code path. Groups nested inside groups are not supported.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern, Tuple

from pydantic import ValidationError as PydanticValidationError

from funnelboard.config import settings
from funnelboard.core.exceptions import ValidationError
from funnelboard.core.logging import get_logger
from funnelboard.models.ad_models import AdRecord
from funnelboard.models.funnel_models import (
    FilterField,
    FilterGroup,
    FilterOperator,
    FilterRule,
    FunnelConfig,
    LogicOperator,
)

logger = get_logger("analyzer.filter")


@dataclass(frozen=True)
class RuleSet:
    """Normalized rule set: one logic operator over a flat tuple of rules."""

    logic: LogicOperator
    rules: Tuple[FilterRule, ...] = ()


# One accessor per FilterField; a missing entry is a KeyError, not a silent ""
FIELD_ACCESSORS: Dict[FilterField, Callable[[AdRecord], Optional[str]]] = {
    FilterField.CAMPAIGN_NAME: lambda r: r.campaign_name,
    FilterField.CAMPAIGN_ID: lambda r: r.campaign_id,
    FilterField.ADSET_NAME: lambda r: r.adset_name,
    FilterField.ADSET_ID: lambda r: r.adset_id,
    FilterField.AD_NAME: lambda r: r.ad_name,
    FilterField.AD_ID: lambda r: r.ad_id,
}


def get_field_value(record: AdRecord, field: FilterField) -> str:
    """Read a filterable field, treating missing values as an empty string."""
    return FIELD_ACCESSORS[field](record) or ""


# ─────────────────────────────────────────────
# NORMALIZATION
# ─────────────────────────────────────────────


def _is_group(item: Any) -> bool:
    return isinstance(item, FilterGroup) or (isinstance(item, dict) and "logic" in item)


def _parse_rule(item: Any) -> FilterRule:
    if isinstance(item, FilterRule):
        return item
    if _is_group(item):
        raise ValidationError("rules", "Nested filter groups are not supported")
    try:
        return FilterRule.model_validate(item)
    except PydanticValidationError as e:
        raise ValidationError("rules", f"Invalid filter rule: {e.errors()[0]['msg']}", item)


def normalize_rules(rules: Any) -> RuleSet:
    """Fold any accepted rules shape into a RuleSet.

    Accepts None, a RuleSet, a FilterGroup, a list of FilterRule, or the
    stored JSON form of either (a list of dicts or a {"logic", "rules"}
    dict). A bare list, and None, mean AND.

    Raises:
        ValidationError: If the shape or any rule is invalid
    """
    if rules is None:
        return RuleSet(LogicOperator.AND)

    if isinstance(rules, RuleSet):
        return rules

    if isinstance(rules, FilterGroup):
        return RuleSet(rules.logic, tuple(rules.rules))

    if isinstance(rules, dict):
        if "rules" not in rules:
            raise ValidationError("rules", "Filter group needs a 'rules' list", rules)
        for item in rules.get("rules") or []:
            if _is_group(item):
                raise ValidationError("rules", "Nested filter groups are not supported")
        try:
            group = FilterGroup.model_validate(rules)
        except PydanticValidationError as e:
            raise ValidationError("rules", f"Invalid filter group: {e.errors()[0]['msg']}", rules)
        return RuleSet(group.logic, tuple(group.rules))

    if isinstance(rules, (list, tuple)):
        return RuleSet(LogicOperator.AND, tuple(_parse_rule(item) for item in rules))

    raise ValidationError(
        "rules", "Must be a list of rules or a filter group", type(rules).__name__
    )


# ─────────────────────────────────────────────
# MATCHING
# ─────────────────────────────────────────────


@lru_cache(maxsize=512)
def _compile_pattern(pattern: str, case_sensitive: bool) -> Optional[Pattern[str]]:
    """Compile a rule's regex once; None if the pattern is invalid."""
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        logger.warning(
            f"Invalid regex in filter rule, treating as non-match: {e}",
            extra={"pattern": pattern},
        )
        return None


def apply_rule(value: str, rule: FilterRule) -> bool:
    """Evaluate one rule against a field value."""
    if rule.operator == FilterOperator.REGEX:
        compiled = _compile_pattern(rule.value, rule.case_sensitive)
        return compiled is not None and compiled.search(value) is not None

    if rule.case_sensitive:
        candidate, expected = value, rule.value
    else:
        candidate, expected = value.lower(), rule.value.lower()

    if rule.operator == FilterOperator.CONTAINS:
        return expected in candidate
    if rule.operator == FilterOperator.NOT_CONTAINS:
        return expected not in candidate
    if rule.operator == FilterOperator.STARTS_WITH:
        return candidate.startswith(expected)
    if rule.operator == FilterOperator.ENDS_WITH:
        return candidate.endswith(expected)
    if rule.operator == FilterOperator.EQUALS:
        return candidate == expected
    if rule.operator == FilterOperator.NOT_EQUALS:
        return candidate != expected
    return False


def matches(record: AdRecord, rules: Any) -> bool:
    """Return True if the record satisfies the rule set.

    AND needs every rule (an empty AND matches everything); OR needs one
    (an empty OR matches nothing). Both stop at the first decisive rule.
    """
    rule_set = normalize_rules(rules)
    results = (
        apply_rule(get_field_value(record, rule.field), rule) for rule in rule_set.rules
    )
    if rule_set.logic == LogicOperator.OR:
        return any(results)
    return all(results)


def filter_records(records: Iterable[AdRecord], rules: Any) -> List[AdRecord]:
    """Return the records that match a rule set, normalizing it once."""
    rule_set = normalize_rules(rules)
    return [r for r in records if matches(r, rule_set)]


def assign_funnels(
    records: Iterable[AdRecord], funnels: Iterable[FunnelConfig]
) -> Dict[str, List[AdRecord]]:
    """Partition records into active funnels.

    A record can belong to several funnels; inactive funnels are skipped.
    Keys follow the funnels' display order.
    """
    records = list(records)
    assigned: Dict[str, List[AdRecord]] = {}
    for funnel in sorted(funnels, key=lambda f: f.order):
        if not funnel.is_active:
            continue
        assigned[funnel.id] = filter_records(records, funnel.rules)

    logger.info(
        f"Assigned {len(records)} records across {len(assigned)} funnels",
    )
    return assigned


# ─────────────────────────────────────────────
# SAVE-TIME VALIDATION
# ─────────────────────────────────────────────


def validate_rule(rule: FilterRule) -> FilterRule:
    """
    Validate a rule before it is stored.

    Raises:
        ValidationError: Empty value, or a regex that is too long or invalid
    """
    if not rule.value.strip():
        raise ValidationError("value", "Rule value is required")

    if rule.operator == FilterOperator.REGEX:
        if len(rule.value) > settings.regex_max_length:
            raise ValidationError(
                "value",
                f"Regular expression cannot exceed {settings.regex_max_length} characters",
                f"{len(rule.value)} characters",
            )
        try:
            re.compile(rule.value)
        except re.error as e:
            raise ValidationError("value", f"Invalid regular expression: {e}", rule.value)

    return rule


def validate_rules(rules: Any) -> RuleSet:
    """Normalize a rules payload and validate every rule in it."""
    rule_set = normalize_rules(rules)
    for rule in rule_set.rules:
        validate_rule(rule)
    return rule_set

"""FUNNELBOARD — Funnel & Filter Rule Models."""

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FilterField(str, Enum):
    """Ad record attributes a rule can test."""

    CAMPAIGN_NAME = "campaign_name"
    CAMPAIGN_ID = "campaign_id"
    ADSET_NAME = "adset_name"
    ADSET_ID = "adset_id"
    AD_NAME = "ad_name"
    AD_ID = "ad_id"


class FilterOperator(str, Enum):
    """Comparison applied between the field value and the rule value."""

    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    REGEX = "regex"


class LogicOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ConversionMetric(str, Enum):
    """Which conversion a funnel is judged by."""

    PURCHASES = "purchases"
    REGISTRATIONS = "registrations"
    LEADS = "leads"


class FilterRule(BaseModel):
    """A single field/operator/value predicate."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    field: FilterField
    operator: FilterOperator
    value: str
    case_sensitive: bool = Field(default=False, alias="caseSensitive")


class FilterGroup(BaseModel):
    """Rules combined with AND or OR.

    Groups hold rules only; a group of groups is not part of the data
    model and fails validation.
    """

    model_config = ConfigDict(frozen=True)

    logic: LogicOperator = LogicOperator.AND
    rules: List[FilterRule] = []


FunnelRules = Union[List[FilterRule], FilterGroup]


class FunnelConfig(BaseModel):
    """A named, filtered view over ad records."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    order: int = 0
    is_active: bool = Field(default=True, alias="isActive")
    conversion_metric: ConversionMetric = Field(
        default=ConversionMetric.PURCHASES, alias="conversionMetric"
    )
    rules: FunnelRules = []

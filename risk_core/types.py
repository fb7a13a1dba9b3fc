from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

OptionId = Union[int, str]
CriterionId = Union[int, str]


class SelectionMode(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class RiskTier(str, Enum):
    # values are the labels stored on assessment records
    LOW = "LOW RISK"
    MODERATE = "MODERATE RISK"
    HIGH = "HIGH RISK"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {RiskTier.LOW: 0, RiskTier.MODERATE: 1, RiskTier.HIGH: 2}


@dataclass(frozen=True)
class Option:
    id: OptionId; label: str; points: int


@dataclass(frozen=True)
class Criterion:
    id: CriterionId
    category: str
    options: Tuple[Option, ...]
    description: Optional[str] = None

    def option(self, option_id: OptionId) -> Optional[Option]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


@dataclass(frozen=True)
class ThresholdTable:
    low_threshold: int
    moderate_threshold: int
    high_threshold: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "low_threshold": self.low_threshold,
            "moderate_threshold": self.moderate_threshold,
            "high_threshold": self.high_threshold,
        }


@dataclass(frozen=True)
class Single:
    option_id: OptionId

    def option_ids(self) -> Tuple[OptionId, ...]:
        return (self.option_id,)


@dataclass(frozen=True)
class Multiple:
    selected: Tuple[OptionId, ...]

    def option_ids(self) -> Tuple[OptionId, ...]:
        return self.selected


ResponseEntry = Union[Single, Multiple]


@dataclass(frozen=True)
class AssessmentResult:
    total_score: int
    risk_tier: RiskTier
    selected_option_ids: List[OptionId] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_score": self.total_score,
            "risk_tier": self.risk_tier.value,
            "selected_option_ids": list(self.selected_option_ids),
        }


@dataclass
class AssessmentRecord:
    subject_name: str
    selected_option_ids: List[OptionId]
    branch_id: Optional[int] = None
    total_score: Optional[int] = None
    risk_tier: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, object]) -> "AssessmentRecord":
        return cls(
            subject_name=str(raw.get("subject_name") or raw.get("name") or ""),
            selected_option_ids=list(raw.get("selected_option_ids") or raw.get("responses") or []),  # type: ignore[arg-type]
            branch_id=raw.get("branch_id"),  # type: ignore[arg-type]
            total_score=raw.get("total_score"),  # type: ignore[arg-type]
            risk_tier=raw.get("risk_tier") or raw.get("risk_level"),  # type: ignore[arg-type]
            created_at=raw.get("created_at"),  # type: ignore[arg-type]
            updated_at=raw.get("updated_at"),  # type: ignore[arg-type]
        )


@dataclass
class AuditEvent:
    t: str
    kind: str
    subject_name: str = ""
    criterion_id: Optional[CriterionId] = None
    option_id: Optional[OptionId] = None
    total_score: Optional[int] = None
    risk_tier: Optional[str] = None
    detail: str = ""

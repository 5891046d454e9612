"""
model.py - data model for relationship predictions.

Candidates are produced by detection rules and merged by the aggregator;
PredictedRelationship records are what the prediction store persists and
admins review. Enum values are the strings used on the wire.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")

PredictionKey = Tuple[str, str, str, str]  # (tree_id, source, target, predicted_type)


def _parse_enum(enum_cls, value: Any):
    """Case-insensitive lookup by wire value; None if unrecognised."""
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if str(value).lower() == member.value.lower():
            return member
    return None


class PredictedType(str, Enum):
    PARENT_CHILD = "parent_child"
    UNION = "union"

    @classmethod
    def parse(cls, value: Any) -> Optional["PredictedType"]:
        return _parse_enum(cls, value)


class PredictionStatus(str, Enum):
    NEW = "New"
    DISMISSED = "Dismissed"
    APPLIED = "Applied"

    @classmethod
    def parse(cls, value: Any) -> Optional["PredictionStatus"]:
        return _parse_enum(cls, value)


class ConfidenceLevel(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, value: Any) -> Optional["ConfidenceLevel"]:
        return _parse_enum(cls, value)


class ResultCode(str, Enum):
    OK = "ok"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    CONFLICT = "conflict"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal_error"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PredictionCandidate:
    """
    A proposed relationship emitted by one detection rule.

    For parent_child, source is the proposed parent and target the child.
    For union, source and target are the two partners.
    """
    rule_id: str
    predicted_type: PredictedType
    source_person_id: str
    target_person_id: str
    confidence: float
    explanation: str

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be within [0, 100], got {self.confidence}")
        object.__setattr__(self, "predicted_type", PredictedType(self.predicted_type))

    @property
    def key(self) -> Tuple[str, str, PredictedType]:
        return (self.source_person_id, self.target_person_id, self.predicted_type)


@dataclass
class PredictedRelationship:
    """
    Persistent prediction awaiting (or having received) a human decision.

    Attributes:
        id (str): Unique identifier.
        tree_id (str): Tree the prediction belongs to.
        rule_id (str): Primary rule that produced it.
        predicted_type (PredictedType): parent_child or union.
        source_person_id (str): Proposed parent, or first partner.
        target_person_id (str): Proposed child, or second partner.
        confidence (float): 0-100.
        confidence_level (ConfidenceLevel): Bucket derived from confidence.
        explanation (str): Human-readable justification.
        status (PredictionStatus): New, then Applied or Dismissed.
        created_at (datetime): Creation time (UTC).
        scan_batch_id (Optional[str]): Scan that produced it.
        resolved_by_user_id (Optional[str]): Who accepted or dismissed it.
        resolved_at (Optional[datetime]): When it was resolved.
        dismiss_reason (Optional[str]): Only set when dismissed.
        applied_entity_type (Optional[str]): "ParentChild" or "Union" once applied.
        applied_entity_id (Optional[str]): Id of the graph entity created on accept.
    """
    id: str
    tree_id: str
    rule_id: str
    predicted_type: PredictedType
    source_person_id: str
    target_person_id: str
    confidence: float
    confidence_level: ConfidenceLevel
    explanation: str
    status: PredictionStatus = PredictionStatus.NEW
    created_at: datetime = field(default_factory=utc_now)
    scan_batch_id: Optional[str] = None
    resolved_by_user_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    dismiss_reason: Optional[str] = None
    applied_entity_type: Optional[str] = None
    applied_entity_id: Optional[str] = None

    @property
    def key(self) -> PredictionKey:
        return (self.tree_id, self.source_person_id, self.target_person_id, PredictedType(self.predicted_type).value)

    @property
    def is_resolved(self) -> bool:
        return self.status != PredictionStatus.NEW

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using wire values for enums and ISO-8601 timestamps."""
        d = asdict(self)
        for name in ("predicted_type", "status", "confidence_level"):
            d[name] = getattr(self, name).value
        for name in ("created_at", "resolved_at"):
            value = getattr(self, name)
            d[name] = value.isoformat() if value else None
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> PredictedRelationship:
        """Inverse of to_dict()."""
        created_at = d.get("created_at")
        resolved_at = d.get("resolved_at")
        return cls(
            id=d["id"],
            tree_id=d["tree_id"],
            rule_id=d["rule_id"],
            predicted_type=PredictedType(d["predicted_type"]),
            source_person_id=d["source_person_id"],
            target_person_id=d["target_person_id"],
            confidence=float(d["confidence"]),
            confidence_level=ConfidenceLevel(d["confidence_level"]),
            explanation=d.get("explanation", ""),
            status=PredictionStatus(d.get("status", PredictionStatus.NEW.value)),
            created_at=datetime.fromisoformat(created_at) if isinstance(created_at, str) else (created_at or utc_now()),
            scan_batch_id=d.get("scan_batch_id"),
            resolved_by_user_id=d.get("resolved_by_user_id"),
            resolved_at=datetime.fromisoformat(resolved_at) if isinstance(resolved_at, str) else resolved_at,
            dismiss_reason=d.get("dismiss_reason"),
            applied_entity_type=d.get("applied_entity_type"),
            applied_entity_id=d.get("applied_entity_id"),
        )


@dataclass
class RuleOutcome:
    """Result of running one rule: its candidates, or the reason it failed."""
    rule_id: str
    candidates: List[PredictionCandidate] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ScanSummary:
    batch_id: str
    total: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    predictions: List[PredictedRelationship] = field(default_factory=list)
    rule_outcomes: List[RuleOutcome] = field(default_factory=list)
    skipped_resolved: int = 0
    conflicts: int = 0

    @property
    def failed_rules(self) -> List[str]:
        return [o.rule_id for o in self.rule_outcomes if not o.ok]


@dataclass
class PredictionFilter:
    """Optional filters plus paging for stored predictions."""
    status: Optional[Any] = None
    confidence_level: Optional[Any] = None
    rule_id: Optional[str] = None
    predicted_type: Optional[Any] = None
    page: int = 1
    page_size: int = 50

    def __post_init__(self):
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")

    def matches(self, prediction: PredictedRelationship) -> bool:
        # Enum filters are case-insensitive; unrecognised values do not filter
        for name, enum_cls in (("status", PredictionStatus),
                               ("confidence_level", ConfidenceLevel),
                               ("predicted_type", PredictedType)):
            wanted = getattr(self, name)
            if not wanted:
                continue
            parsed = enum_cls.parse(wanted)
            if parsed is not None and getattr(prediction, name) != parsed:
                return False
        if self.rule_id and prediction.rule_id != self.rule_id:
            return False
        return True


@dataclass
class Page(Generic[T]):
    items: List[T]
    total_count: int
    page: int
    page_size: int
    total_pages: int


@dataclass
class ServiceResult(Generic[T]):
    """Structured outcome of a public service operation."""
    code: ResultCode = ResultCode.OK
    message: str = ""
    value: Optional[T] = None

    @property
    def is_success(self) -> bool:
        return self.code == ResultCode.OK

    @classmethod
    def success(cls, value: Optional[T] = None, message: str = "") -> ServiceResult[T]:
        return cls(code=ResultCode.OK, message=message, value=value)

    @classmethod
    def failure(cls, code: ResultCode, message: str) -> ServiceResult[T]:
        return cls(code=code, message=message)

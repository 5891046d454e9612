"""
Base classes and registry for detection rules.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple, Type, runtime_checkable

from tree_predict.graph import BIOLOGICAL, GraphRepository, ParentChild
from tree_predict.model import PredictionCandidate

logger = logging.getLogger(__name__)

# Rule Registry
_RULE_REGISTRY: Dict[str, Type['BaseRule']] = {}


def register_rule(cls: Type['BaseRule']) -> Type['BaseRule']:
    """
    Decorator to register a rule class in the global registry.

    Usage:
        @register_rule
        @dataclass
        class MyRule(BaseRule):
            rule_id: str = "my_rule"
            ...
    """
    rule_id = getattr(cls, 'rule_id', None)
    if rule_id:
        _RULE_REGISTRY[rule_id] = cls
        logger.debug(f"Registered prediction rule: {rule_id}")
    else:
        logger.warning(f"Rule {cls.__name__} missing 'rule_id' attribute, not registered")
    return cls


def get_rule_registry() -> Dict[str, Type['BaseRule']]:
    """Get a copy of the global rule registry."""
    return _RULE_REGISTRY.copy()


@runtime_checkable
class PredictionRule(Protocol):
    """Anything with a rule_id and a detect(tree_id) method can act as a rule."""
    rule_id: str

    def detect(self, tree_id: str) -> List[PredictionCandidate]: ...


@dataclass
class BaseRule:
    """
    Base class for detection rules.

    Rules are read-only scanners over the canonical graph. They return an
    empty list when there is no evidence and only raise on infrastructure
    failures.

    Attributes:
        rule_id: Unique identifier for this rule
        description: Human-readable summary shown next to its predictions
        graph: Graph repository the rule reads from
    """
    rule_id: str = ""
    description: str = ""
    graph: Optional[GraphRepository] = None

    def __post_init__(self):
        """Validate rule configuration."""
        if not self.rule_id:
            raise ValueError(f"{self.__class__.__name__} must define rule_id")

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        raise NotImplementedError

    def _require_graph(self) -> GraphRepository:
        if self.graph is None:
            raise RuntimeError(f"Rule {self.rule_id} has no graph repository")
        return self.graph

    def _candidate(self, predicted_type, source_id: str, target_id: str,
                   confidence: float, explanation: str) -> PredictionCandidate:
        return PredictionCandidate(
            rule_id=self.rule_id,
            predicted_type=predicted_type,
            source_person_id=source_id,
            target_person_id=target_id,
            confidence=confidence,
            explanation=explanation,
        )


def index_links(links: List[ParentChild]) -> Tuple[Dict[str, Set[str]], Dict[str, Set[str]]]:
    """
    Build (children_by_parent, parents_by_child) lookups from edges.
    """
    children: Dict[str, Set[str]] = {}
    parents: Dict[str, Set[str]] = {}
    for link in links:
        children.setdefault(link.parent_id, set()).add(link.child_id)
        parents.setdefault(link.child_id, set()).add(link.parent_id)
    return children, parents


def biological_parent_counts(links: List[ParentChild]) -> Dict[str, int]:
    """Number of biological parents recorded per child."""
    counts: Dict[str, int] = {}
    for link in links:
        if link.relationship_type == BIOLOGICAL:
            counts[link.child_id] = counts.get(link.child_id, 0) + 1
    return counts


def top_candidates(candidates: List[PredictionCandidate], limit: Optional[int]) -> List[PredictionCandidate]:
    """Best `limit` candidates by confidence (stable for ties)."""
    ranked = sorted(candidates, key=lambda c: c.confidence, reverse=True)
    return ranked[:limit] if limit else ranked


def person_name(person: Any, native: bool = False) -> str:
    """Name used in explanations; '?' when the person or name is missing."""
    if person is None:
        return "?"
    if native:
        return person.display_name
    return person.name or "?"

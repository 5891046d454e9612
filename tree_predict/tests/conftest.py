"""
Pytest fixtures for prediction tests.
"""
from __future__ import annotations

import pytest
from dataclasses import dataclass, field
from typing import List, Optional

from tree_predict.auth import RoleAuthorizationGate, UserContext
from tree_predict.config import PredictionConfig
from tree_predict.date_utils import coerce_to_date
from tree_predict.graph import InMemoryGraph
from tree_predict.model import PredictedType, PredictionCandidate
from tree_predict.person import Person
from tree_predict.service import PredictionService
from tree_predict.store import InMemoryPredictionStore


# Test doubles for rules (not registered, so the default registry stays clean)
@dataclass
class StaticRule:
    """Rule returning a fixed candidate list."""
    rule_id: str = "static"
    candidates: List[PredictionCandidate] = field(default_factory=list)
    description: str = "Static test rule"

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        return list(self.candidates)


@dataclass
class FailingRule:
    """Rule that always raises."""
    rule_id: str = "failing"
    description: str = "Always fails"

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        raise RuntimeError("database unavailable")


class StopHooks:
    """App hooks that request a stop once `after` polls have answered no."""
    def __init__(self, stop: bool = True, after: int = 0):
        self.stop = stop
        self.after = after
        self.polls = 0
        self.steps = []

    def report_step(self, info: str = None, target: int = None, reset_counter: bool = False, plus_step: int = 1) -> None:
        self.steps.append(info)

    def stop_requested(self) -> bool:
        self.polls += 1
        return self.stop and self.polls > self.after


def candidate(rule_id: str, source: str, target: str, confidence: float,
              predicted_type: PredictedType = PredictedType.PARENT_CHILD,
              explanation: Optional[str] = None) -> PredictionCandidate:
    return PredictionCandidate(
        rule_id=rule_id,
        predicted_type=predicted_type,
        source_person_id=source,
        target_person_id=target,
        confidence=confidence,
        explanation=explanation or f"{rule_id} says {source} -> {target}",
    )


@pytest.fixture
def make_candidate():
    return candidate


@pytest.fixture
def static_rule():
    def _make(rule_id: str, candidates: List[PredictionCandidate]) -> StaticRule:
        return StaticRule(rule_id=rule_id, candidates=candidates)
    return _make


@pytest.fixture
def failing_rule():
    return FailingRule(rule_id="boom")


@pytest.fixture
def stop_hooks():
    return StopHooks()


@pytest.fixture
def make_stop_hooks():
    return StopHooks


@pytest.fixture
def graph():
    """Empty graph holding tree T1."""
    g = InMemoryGraph()
    g.add_tree("T1")
    return g


@pytest.fixture
def make_person(graph):
    """Add a person to the graph."""
    def _make(person_id: str, name: str = None, sex: str = None, birth=None,
              family_id: str = None, native_name: str = None, tree_id: str = "T1") -> Person:
        return graph.add_person(Person(
            person_id, tree_id,
            name=name if name is not None else person_id,
            native_name=native_name,
            sex=sex,
            birth_date=coerce_to_date(birth),
            family_id=family_id,
        ))
    return _make


@pytest.fixture
def admin():
    return UserContext(user_id="admin-1", system_role="Admin")


@pytest.fixture
def viewer():
    return UserContext(user_id="viewer-1", system_role="User")


@pytest.fixture
def store():
    return InMemoryPredictionStore()


@pytest.fixture
def sequential_config():
    return PredictionConfig.from_dict({"max_workers": 1})


@pytest.fixture
def make_service(graph, store):
    """Build a PredictionService over the shared graph and store."""
    def _make(rules=None, config=None, app_hooks=None) -> PredictionService:
        return PredictionService(graph, store, RoleAuthorizationGate(),
                                 rules=rules, config=config, app_hooks=app_hooks)
    return _make


@pytest.fixture
def spouse_gap_family(graph, make_person):
    """Union(A, B) with child C linked to A only."""
    make_person("A", "Adam", sex="M")
    make_person("B", "Eve", sex="F")
    make_person("C", "Cain", sex="M")
    graph.add_union("T1", ["A", "B"])
    graph.add_parent_child("A", "C")
    return graph


@pytest.fixture
def co_parents(graph, make_person):
    """X and Y both parents of Z, with no union."""
    make_person("X", "Xavier", sex="M")
    make_person("Y", "Yara", sex="F")
    make_person("Z", "Zed")
    graph.add_parent_child("X", "Z")
    graph.add_parent_child("Y", "Z")
    return graph

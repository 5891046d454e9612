"""tree_predict package: detects missing relationships in family trees, scores them
and manages their review.

Core classes:
    - PredictionService: scans trees, stores predictions, accepts/dismisses them
    - PredictionConfig: configuration loaded from config.yaml
    - InMemoryGraph / GraphRepository: canonical graph access
    - InMemoryPredictionStore / PredictionStore: prediction persistence
    - RoleAuthorizationGate / UserContext: admin capability check

Example:
    >>> from tree_predict import InMemoryGraph, InMemoryPredictionStore, PredictionService
    >>> from tree_predict import RoleAuthorizationGate, UserContext
    >>> service = PredictionService(graph, InMemoryPredictionStore(), RoleAuthorizationGate())
    >>> result = service.scan_tree("tree-1", UserContext(user_id="42", system_role="Admin"))
    >>> for prediction in result.value.predictions:
    ...     print(prediction.confidence_level.value, prediction.explanation)
"""

from tree_predict.aggregator import aggregate_candidates, confidence_level, noisy_or
from tree_predict.auth import AuthorizationGate, RoleAuthorizationGate, UserContext
from tree_predict.config import PredictionConfig
from tree_predict.defaults import get_default_rules
from tree_predict.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PersistenceConflict,
    PredictionError,
    RuleExecutionError,
    ScanCancelled,
)
from tree_predict.graph import GraphRepository, InMemoryGraph, ParentChild
from tree_predict.model import (
    ConfidenceLevel,
    Page,
    PredictedRelationship,
    PredictedType,
    PredictionCandidate,
    PredictionFilter,
    PredictionStatus,
    ResultCode,
    RuleOutcome,
    ScanSummary,
    ServiceResult,
)
from tree_predict.person import Person
from tree_predict.service import PredictionService
from tree_predict.store import InMemoryPredictionStore, PredictionStore
from tree_predict.union import Union, UnionMember

__all__ = [
    "aggregate_candidates",
    "confidence_level",
    "noisy_or",
    "AuthorizationGate",
    "RoleAuthorizationGate",
    "UserContext",
    "PredictionConfig",
    "get_default_rules",
    "ForbiddenError",
    "InvalidStateError",
    "NotFoundError",
    "PersistenceConflict",
    "PredictionError",
    "RuleExecutionError",
    "ScanCancelled",
    "GraphRepository",
    "InMemoryGraph",
    "ParentChild",
    "ConfidenceLevel",
    "Page",
    "PredictedRelationship",
    "PredictedType",
    "PredictionCandidate",
    "PredictionFilter",
    "PredictionStatus",
    "ResultCode",
    "RuleOutcome",
    "ScanSummary",
    "ServiceResult",
    "Person",
    "PredictionService",
    "InMemoryPredictionStore",
    "PredictionStore",
    "Union",
    "UnionMember",
]

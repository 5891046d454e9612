"""
service.py - orchestration of relationship predictions.

PredictionService runs the detection rules over a tree, merges their output,
reconciles it with stored predictions and drives the review lifecycle:
accepting a prediction writes the relationship into the canonical graph,
dismissing it records the human decision so later scans leave it alone.

Public methods never raise; they return a ServiceResult whose code says
what happened.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
import dataclasses
import logging
import math
import threading
import uuid
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from tree_predict.aggregator import aggregate_candidates, confidence_level
from tree_predict.app_hooks import AppHooks
from tree_predict.auth import AuthorizationGate, UserContext
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
from tree_predict.graph import BIOLOGICAL, MARRIAGE, GraphRepository
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
    utc_now,
)
from tree_predict.rules import PredictionRule, get_rule_registry
from tree_predict.store import PredictionStore

logger = logging.getLogger(__name__)

APPLIED_PARENT_CHILD = "ParentChild"
APPLIED_UNION = "Union"
GENERIC_ERROR_MESSAGE = "An unexpected error occurred"
ALREADY_EXISTS_MESSAGE = "Failed to create the relationship. It may already exist."

_ERROR_CODES = (
    (ForbiddenError, ResultCode.FORBIDDEN),
    (NotFoundError, ResultCode.NOT_FOUND),
    (InvalidStateError, ResultCode.INVALID_STATE),
    (PersistenceConflict, ResultCode.CONFLICT),
    (ScanCancelled, ResultCode.CANCELLED),
)


class PredictionService:
    """
    Scan orchestrator and review lifecycle for predicted relationships.

    Args:
        graph: Canonical graph repository (read by rules, written on accept).
        store: Prediction store.
        auth_gate: Decides whether a caller has admin capability.
        rules: Detection rules; defaults to the enabled registered rules.
        config: PredictionConfig; defaults to the packaged config.yaml.
        app_hooks: Optional progress reporting / cooperative cancellation.
    """

    def __init__(
        self,
        graph: GraphRepository,
        store: PredictionStore,
        auth_gate: AuthorizationGate,
        rules: Optional[Sequence[PredictionRule]] = None,
        config: Optional[PredictionConfig] = None,
        app_hooks: Optional['AppHooks'] = None,
    ) -> None:
        self.graph = graph
        self.store = store
        self.auth_gate = auth_gate
        self.config = config or PredictionConfig()
        self.rules = list(rules) if rules is not None else get_default_rules(self.config, graph)
        self.app_hooks = app_hooks

        self._tree_locks: Dict[str, list] = {}
        self._tree_locks_guard = threading.Lock()

    # ---------- public operations ----------

    def scan_tree(self, tree_id: str, user: Optional[UserContext]) -> ServiceResult[ScanSummary]:
        """Run every rule over the tree and replace its unresolved predictions."""
        return self._guarded(f"scan of tree {tree_id}", lambda: self._scan_tree(tree_id, user))

    def get_predictions(self, tree_id: str, prediction_filter: Optional[PredictionFilter] = None,
                        user: Optional[UserContext] = None) -> ServiceResult[Page[PredictedRelationship]]:
        """Filtered, confidence-ordered page of stored predictions for a tree."""
        return self._guarded(f"query of tree {tree_id}",
                             lambda: self._get_predictions(tree_id, prediction_filter, user))

    def accept_prediction(self, prediction_id: str, user: Optional[UserContext]) -> ServiceResult[PredictedRelationship]:
        """Write the predicted relationship to the graph and mark the prediction Applied."""
        return self._guarded(f"accept of prediction {prediction_id}",
                             lambda: self._accept_prediction(prediction_id, user))

    def dismiss_prediction(self, prediction_id: str, reason: Optional[str] = None,
                           user: Optional[UserContext] = None) -> ServiceResult[PredictedRelationship]:
        """Mark a New prediction Dismissed, keeping the reason."""
        return self._guarded(f"dismiss of prediction {prediction_id}",
                             lambda: self._dismiss_prediction(prediction_id, reason, user))

    def accept_all_high_confidence(self, tree_id: str, min_confidence: Optional[float] = None,
                                   user: Optional[UserContext] = None) -> ServiceResult[int]:
        """Accept every New prediction at or above `min_confidence`; returns the number accepted."""
        if min_confidence is None:
            min_confidence = float(self.config.bulk_accept_min_confidence)
        return self._guarded(f"bulk accept for tree {tree_id}",
                             lambda: self._accept_all(tree_id, min_confidence, user))

    def describe_rule(self, rule_id: str) -> str:
        """Human-readable description of a rule, falling back to its id."""
        for rule in self.rules:
            if rule.rule_id == rule_id and getattr(rule, 'description', None):
                return rule.description
        rule_class = get_rule_registry().get(rule_id)
        if rule_class is not None:
            description = rule_class.__dataclass_fields__['description'].default
            if description:
                return description
        return rule_id

    def run_rules(self, tree_id: str) -> List[RuleOutcome]:
        """
        Run every rule against the tree, isolating failures.

        Rules run in a thread pool of `config.max_workers`; the returned
        outcomes follow the order of self.rules regardless.

        Raises:
            ScanCancelled: stop requested through app hooks.
        """
        workers = min(self.config.max_workers, len(self.rules))
        self._report_step(info=f"Running {len(self.rules)} prediction rules", target=len(self.rules),
                          reset_counter=True, plus_step=0)

        if workers <= 1:
            outcomes = []
            for rule in self.rules:
                self._check_stop()
                outcomes.append(self._run_rule(rule, tree_id))
                self._report_step(plus_step=1)
            return outcomes

        self._check_stop()
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="prediction-rule") as pool:
            futures = [pool.submit(self._run_rule, rule, tree_id) for rule in self.rules]
            outcomes = []
            for future in futures:
                outcomes.append(future.result())
                self._report_step(plus_step=1)
        return outcomes

    # ---------- operation bodies ----------

    def _scan_tree(self, tree_id: str, user: Optional[UserContext]) -> ScanSummary:
        self._authorize(user, tree_id)
        if not self.graph.tree_exists(tree_id):
            raise NotFoundError("Tree not found")

        batch_id = str(uuid.uuid4())
        logger.info(f"Starting prediction scan for tree {tree_id}, batch {batch_id}")

        outcomes = self.run_rules(tree_id)
        aggregated = aggregate_candidates(c for outcome in outcomes for c in outcome.candidates)

        summary = ScanSummary(batch_id=batch_id, rule_outcomes=outcomes)
        with self._tree_lock(tree_id):
            self._check_stop()
            removed = self.store.delete_where(tree_id, PredictionStatus.NEW)
            logger.debug(f"Removed {removed} stale predictions for tree {tree_id}")

            for candidate in aggregated:
                if self.store.find_resolved(tree_id, candidate.source_person_id,
                                            candidate.target_person_id, candidate.predicted_type):
                    summary.skipped_resolved += 1
                    continue

                prediction = self._new_prediction(tree_id, batch_id, candidate)
                try:
                    self.store.insert(prediction)
                except PersistenceConflict as e:
                    logger.warning(f"Duplicate prediction skipped during scan of tree {tree_id}: {e}")
                    summary.conflicts += 1
                    continue
                summary.predictions.append(prediction)

        summary.predictions.sort(key=lambda p: p.confidence, reverse=True)
        summary.total = len(summary.predictions)
        summary.high_count = sum(1 for p in summary.predictions if p.confidence_level == ConfidenceLevel.HIGH)
        summary.medium_count = sum(1 for p in summary.predictions if p.confidence_level == ConfidenceLevel.MEDIUM)
        summary.low_count = sum(1 for p in summary.predictions if p.confidence_level == ConfidenceLevel.LOW)

        logger.info(
            f"Prediction scan complete for tree {tree_id}: {summary.total} predictions "
            f"({summary.high_count} high, {summary.medium_count} medium, {summary.low_count} low)"
            + (f"; failed rules: {', '.join(summary.failed_rules)}" if summary.failed_rules else ""))
        return summary

    def _get_predictions(self, tree_id: str, prediction_filter: Optional[PredictionFilter],
                         user: Optional[UserContext]) -> Page[PredictedRelationship]:
        self._authorize(user, tree_id)
        if prediction_filter is None:
            prediction_filter = PredictionFilter(page_size=self.config.default_page_size)

        total, items = self.store.query(tree_id, prediction_filter)
        return Page(
            items=items,
            total_count=total,
            page=prediction_filter.page,
            page_size=prediction_filter.page_size,
            total_pages=math.ceil(total / prediction_filter.page_size),
        )

    def _accept_prediction(self, prediction_id: str, user: Optional[UserContext]) -> PredictedRelationship:
        prediction = self._load_for_review(prediction_id, user)

        with self._tree_lock(prediction.tree_id):
            prediction = self._require_new(prediction_id)
            self._check_stop()

            try:
                entity_type, entity_id = self._apply_to_graph(prediction)
            except PersistenceConflict as e:
                logger.warning(f"Error applying prediction {prediction_id}: {e}")
                raise PersistenceConflict(ALREADY_EXISTS_MESSAGE) from e

            applied = dataclasses.replace(
                prediction,
                status=PredictionStatus.APPLIED,
                applied_entity_type=entity_type,
                applied_entity_id=entity_id,
                resolved_by_user_id=user.user_id,
                resolved_at=utc_now(),
            )
            self.store.update(applied)

        logger.info(f"Prediction {prediction_id} accepted: created {entity_type} {entity_id}")
        return applied

    def _dismiss_prediction(self, prediction_id: str, reason: Optional[str],
                            user: Optional[UserContext]) -> PredictedRelationship:
        prediction = self._load_for_review(prediction_id, user)

        with self._tree_lock(prediction.tree_id):
            prediction = self._require_new(prediction_id)
            self._check_stop()
            dismissed = dataclasses.replace(
                prediction,
                status=PredictionStatus.DISMISSED,
                dismiss_reason=reason,
                resolved_by_user_id=user.user_id,
                resolved_at=utc_now(),
            )
            self.store.update(dismissed)

        logger.info(f"Prediction {prediction_id} dismissed")
        return dismissed

    def _accept_all(self, tree_id: str, min_confidence: float, user: Optional[UserContext]) -> int:
        self._authorize(user, tree_id)
        predictions = self.store.list_new(tree_id, min_confidence)

        accepted = 0
        for prediction in predictions:
            if self._stop_requested("Bulk accept stopped by user"):
                break
            result = self.accept_prediction(prediction.id, user)
            if result.is_success:
                accepted += 1
            else:
                logger.warning(f"Bulk accept skipped prediction {prediction.id}: {result.message}")

        logger.info(f"Bulk accept for tree {tree_id}: {accepted}/{len(predictions)} predictions accepted")
        return accepted

    # ---------- helpers ----------

    def _guarded(self, action: str, operation: Callable[[], object]) -> ServiceResult:
        try:
            return ServiceResult.success(operation())
        except PredictionError as e:
            for error_type, code in _ERROR_CODES:
                if isinstance(e, error_type):
                    return ServiceResult.failure(code, str(e))
            logger.exception(f"Unhandled prediction error during {action}")
            return ServiceResult.failure(ResultCode.INTERNAL_ERROR, GENERIC_ERROR_MESSAGE)
        except Exception:
            logger.exception(f"Unexpected error during {action}")
            return ServiceResult.failure(ResultCode.INTERNAL_ERROR, GENERIC_ERROR_MESSAGE)

    def _authorize(self, user: Optional[UserContext], tree_id: Optional[str]) -> None:
        if user is None or not self.auth_gate.has_admin_access(user, tree_id):
            raise ForbiddenError("Admin access required")

    def _load_for_review(self, prediction_id: str, user: Optional[UserContext]) -> PredictedRelationship:
        prediction = self.store.get(prediction_id)
        self._authorize(user, prediction.tree_id if prediction else None)
        if prediction is None:
            raise NotFoundError("Prediction not found")
        return prediction

    def _require_new(self, prediction_id: str) -> PredictedRelationship:
        prediction = self.store.get(prediction_id)
        if prediction is None:
            raise NotFoundError("Prediction not found")
        if prediction.status != PredictionStatus.NEW:
            raise InvalidStateError(f"Prediction is already {prediction.status.value}")
        return prediction

    def _apply_to_graph(self, prediction: PredictedRelationship) -> Tuple[str, str]:
        if prediction.predicted_type == PredictedType.PARENT_CHILD:
            link = self.graph.add_parent_child(prediction.source_person_id, prediction.target_person_id,
                                               BIOLOGICAL)
            return APPLIED_PARENT_CHILD, link.id
        if prediction.predicted_type == PredictedType.UNION:
            union = self.graph.add_union(prediction.tree_id,
                                         [prediction.source_person_id, prediction.target_person_id],
                                         MARRIAGE)
            return APPLIED_UNION, union.id
        raise InvalidStateError(f"Unsupported predicted type {prediction.predicted_type}")

    def _new_prediction(self, tree_id: str, batch_id: str, candidate: PredictionCandidate) -> PredictedRelationship:
        return PredictedRelationship(
            id=str(uuid.uuid4()),
            tree_id=tree_id,
            rule_id=candidate.rule_id,
            predicted_type=candidate.predicted_type,
            source_person_id=candidate.source_person_id,
            target_person_id=candidate.target_person_id,
            confidence=candidate.confidence,
            confidence_level=confidence_level(candidate.confidence),
            explanation=candidate.explanation,
            status=PredictionStatus.NEW,
            scan_batch_id=batch_id,
        )

    def _run_rule(self, rule: PredictionRule, tree_id: str) -> RuleOutcome:
        try:
            logger.info(f"Running rule {rule.rule_id} for tree {tree_id}")
            candidates = list(rule.detect(tree_id) or [])
            logger.info(f"Rule {rule.rule_id} found {len(candidates)} candidates")
            return RuleOutcome(rule_id=rule.rule_id, candidates=candidates)
        except Exception as e:
            error = RuleExecutionError(rule.rule_id, e)
            logger.exception(f"Error running prediction rule {rule.rule_id} for tree {tree_id}")
            return RuleOutcome(rule_id=rule.rule_id, error=str(error))

    @contextmanager
    def _tree_lock(self, tree_id: str) -> Iterator[None]:
        """
        Hold the re-entrant lock of `tree_id`.

        Locks are reference counted and dropped once no thread holds or waits
        for them, so the table only holds trees that are in use.
        """
        with self._tree_locks_guard:
            entry = self._tree_locks.get(tree_id)
            if entry is None:
                entry = self._tree_locks[tree_id] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._tree_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._tree_locks[tree_id]

    def _check_stop(self) -> None:
        if self._stop_requested("Prediction scan stopped by user"):
            raise ScanCancelled("Operation cancelled")

    def _report_step(self, info: str = "", target: Optional[int] = None, reset_counter: bool = False, plus_step: int = 0) -> None:
        """
        Report a step via app hooks if available. (Private method)

        Args:
            info (str): Information message.
            target (int): Target count for progress.
            reset_counter (bool): Whether to reset the counter.
            plus_step (int): Incremental step count.
        """
        if self.app_hooks and callable(getattr(self.app_hooks, "report_step", None)):
            self.app_hooks.report_step(info=info, target=target, reset_counter=reset_counter, plus_step=plus_step)
        elif info:
            logger.debug(info)

    def _stop_requested(self, logger_stop_message: str = "Stop requested by user") -> bool:
        """
        Check if stop has been requested via app hooks. (Private method)

        Returns:
            bool: True if stop requested, False otherwise.
        """
        if self.app_hooks and callable(getattr(self.app_hooks, "stop_requested", None)):
            if self.app_hooks.stop_requested():
                if logger_stop_message:
                    logger.debug(logger_stop_message)
                return True
        return False

"""
store.py - persistence of predicted relationships.

PredictionStore is the repository interface the service writes through.
InMemoryPredictionStore keeps records in a dict guarded by a lock and
enforces the "one New prediction per key" unique constraint.
"""
from __future__ import annotations

import copy
import logging
import threading
from typing import Dict, List, Optional, Protocol, Tuple

from tree_predict.errors import NotFoundError, PersistenceConflict
from tree_predict.model import (
    PredictedRelationship,
    PredictedType,
    PredictionFilter,
    PredictionKey,
    PredictionStatus,
)

logger = logging.getLogger(__name__)


class PredictionStore(Protocol):

    def get(self, prediction_id: str) -> Optional[PredictedRelationship]: ...

    def insert(self, prediction: PredictedRelationship) -> PredictedRelationship: ...

    def update(self, prediction: PredictedRelationship) -> PredictedRelationship: ...

    def delete_where(self, tree_id: str, status: PredictionStatus) -> int: ...

    def find_resolved(self, tree_id: str, source_person_id: str, target_person_id: str,
                      predicted_type: PredictedType) -> Optional[PredictedRelationship]: ...

    def query(self, tree_id: str, prediction_filter: PredictionFilter) -> Tuple[int, List[PredictedRelationship]]: ...

    def list_new(self, tree_id: str, min_confidence: float = 0.0) -> List[PredictedRelationship]: ...


class InMemoryPredictionStore:
    """
    Thread-safe in-memory prediction store.

    Records are copied on the way in and out, so callers never mutate stored
    state except through update().
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: Dict[str, PredictedRelationship] = {}
        self._new_keys: Dict[PredictionKey, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, prediction_id: str) -> Optional[PredictedRelationship]:
        with self._lock:
            record = self._records.get(prediction_id)
            return copy.deepcopy(record) if record else None

    def insert(self, prediction: PredictedRelationship) -> PredictedRelationship:
        """
        Add a prediction.

        Raises:
            PersistenceConflict: id already used, or a New prediction already
                exists for the same (tree, source, target, type).
        """
        with self._lock:
            if prediction.id in self._records:
                raise PersistenceConflict(f"Prediction {prediction.id} already exists")
            if prediction.status == PredictionStatus.NEW and prediction.key in self._new_keys:
                raise PersistenceConflict(f"Duplicate unresolved prediction for {prediction.key}")
            self._records[prediction.id] = copy.deepcopy(prediction)
            if prediction.status == PredictionStatus.NEW:
                self._new_keys[prediction.key] = prediction.id
        return prediction

    def update(self, prediction: PredictedRelationship) -> PredictedRelationship:
        """Replace a stored prediction; a single atomic write."""
        with self._lock:
            current = self._records.get(prediction.id)
            if current is None:
                raise NotFoundError(f"Prediction {prediction.id} not found")
            if current.key != prediction.key:
                raise PersistenceConflict(f"Prediction {prediction.id} key cannot change")
            if current.status == PredictionStatus.NEW:
                self._new_keys.pop(current.key, None)
            if prediction.status == PredictionStatus.NEW:
                self._new_keys[prediction.key] = prediction.id
            self._records[prediction.id] = copy.deepcopy(prediction)
        return prediction

    def delete_where(self, tree_id: str, status: PredictionStatus) -> int:
        """Delete every prediction of `tree_id` with `status`; returns the count."""
        with self._lock:
            doomed = [r for r in self._records.values() if r.tree_id == tree_id and r.status == status]
            for record in doomed:
                del self._records[record.id]
                if record.status == PredictionStatus.NEW:
                    self._new_keys.pop(record.key, None)
        if doomed:
            logger.debug(f"Deleted {len(doomed)} {status.value} predictions for tree {tree_id}")
        return len(doomed)

    def find_resolved(self, tree_id: str, source_person_id: str, target_person_id: str,
                      predicted_type: PredictedType) -> Optional[PredictedRelationship]:
        key = (tree_id, source_person_id, target_person_id, PredictedType(predicted_type).value)
        with self._lock:
            for record in self._records.values():
                if record.is_resolved and record.key == key:
                    return copy.deepcopy(record)
        return None

    def query(self, tree_id: str, prediction_filter: PredictionFilter) -> Tuple[int, List[PredictedRelationship]]:
        """
        Filter, sort by confidence (highest first) and page.

        Returns:
            (total matching count, items on the requested page)
        """
        with self._lock:
            matching = [r for r in self._records.values()
                        if r.tree_id == tree_id and prediction_filter.matches(r)]
            matching.sort(key=lambda r: r.confidence, reverse=True)
            start = (prediction_filter.page - 1) * prediction_filter.page_size
            page = matching[start:start + prediction_filter.page_size]
            return len(matching), [copy.deepcopy(r) for r in page]

    def list_new(self, tree_id: str, min_confidence: float = 0.0) -> List[PredictedRelationship]:
        """New predictions of a tree at or above `min_confidence`, highest first."""
        with self._lock:
            records = [copy.deepcopy(r) for r in self._records.values()
                       if r.tree_id == tree_id and r.status == PredictionStatus.NEW
                       and r.confidence >= min_confidence]
        records.sort(key=lambda r: r.confidence, reverse=True)
        return records

    def all(self, tree_id: Optional[str] = None) -> List[PredictedRelationship]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()
                    if tree_id is None or r.tree_id == tree_id]

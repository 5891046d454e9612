"""
Merges candidates from different rules that predict the same relationship.

Independent signals are combined with Noisy-OR: P = 1 - prod(1 - p_i),
capped at 99 so a combination never claims certainty.
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Iterable, List, Tuple

from tree_predict.model import ConfidenceLevel, PredictedType, PredictionCandidate

MAX_COMBINED_CONFIDENCE = 99.0
HIGH_THRESHOLD = 85.0
MEDIUM_THRESHOLD = 60.0


def noisy_or(confidences: Iterable[float]) -> float:
    """
    Combine 0-100 confidences as independent evidence.

    Returns:
        Combined confidence on the 0-100 scale, uncapped and unrounded.
    """
    remaining = 1.0
    for confidence in confidences:
        remaining *= 1.0 - confidence / 100.0
    return (1.0 - remaining) * 100.0


def aggregate_candidates(candidates: Iterable[PredictionCandidate]) -> List[PredictionCandidate]:
    """
    Merge candidates sharing (source, target, predicted_type).

    Single candidates pass through unchanged. For a group, the highest
    confidence member supplies rule_id and explanation; the explanation is
    suffixed with the distinct rule ids that matched.

    Returns:
        Merged candidates sorted by confidence, highest first.
    """
    groups: Dict[Tuple[str, str, PredictedType], List[PredictionCandidate]] = OrderedDict()
    for candidate in candidates:
        groups.setdefault(candidate.key, []).append(candidate)

    merged: List[PredictionCandidate] = []
    for group in groups.values():
        if len(group) == 1:
            merged.append(group[0])
            continue

        ranked = sorted(group, key=lambda c: c.confidence, reverse=True)
        primary = ranked[0]
        combined = min(noisy_or(c.confidence for c in ranked), MAX_COMBINED_CONFIDENCE)
        rule_ids = list(OrderedDict.fromkeys(c.rule_id for c in ranked))

        merged.append(PredictionCandidate(
            rule_id=primary.rule_id,
            predicted_type=primary.predicted_type,
            source_person_id=primary.source_person_id,
            target_person_id=primary.target_person_id,
            confidence=round(combined, 2),
            explanation=f"{primary.explanation} (also matched by: {', '.join(rule_ids)})",
        ))

    return sorted(merged, key=lambda c: c.confidence, reverse=True)


def confidence_level(confidence: float) -> ConfidenceLevel:
    """Bucket a 0-100 confidence; lower bounds are inclusive."""
    if confidence >= HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if confidence >= MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
import logging
from typing import List, Set

from tree_predict.model import PredictedType, PredictionCandidate
from .base import BaseRule, biological_parent_counts, index_links, person_name, register_rule

logger = logging.getLogger(__name__)


@register_rule
@dataclass
class SiblingParentGapRule(BaseRule):
    """
    Sibling missing the second parent.

    Child X has parents A and B, who share a union. Sibling Y has A but not
    B: propose B -> Y (and symmetrically for children of B missing A). The
    more siblings already carry both parents, the more consistent the
    pattern and the higher the confidence.
    """
    rule_id: str = "sibling_parent_gap"
    description: str = "Sibling missing second parent"
    no_sibling_confidence: float = 70
    some_siblings_confidence: float = 80
    many_siblings_confidence: float = 90

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        graph = self._require_graph()
        candidates: List[PredictionCandidate] = []

        links = graph.parent_child_links(tree_id)
        children_by_parent, parents_by_child = index_links(links)
        bio_counts = biological_parent_counts(links)
        processed: Set[tuple] = set()
        checked_pairs: Set[tuple] = set()

        for child_id in sorted(parents_by_child):
            parent_ids = sorted(parents_by_child[child_id])
            if len(parent_ids) < 2:
                continue

            for parent_a, parent_b in combinations(parent_ids, 2):
                if (parent_a, parent_b) in checked_pairs:
                    continue
                checked_pairs.add((parent_a, parent_b))

                if not graph.share_union(parent_a, parent_b):
                    continue

                with_both = children_by_parent[parent_a] & children_by_parent[parent_b]
                confidence = self._confidence(len(with_both))

                for known, missing in ((parent_a, parent_b), (parent_b, parent_a)):
                    for sibling_id in sorted(children_by_parent[known] - children_by_parent[missing]):
                        if (missing, sibling_id) in processed:
                            continue
                        processed.add((missing, sibling_id))

                        if bio_counts.get(sibling_id, 0) >= 2:
                            continue

                        known_name = person_name(graph.get_person(known))
                        missing_name = person_name(graph.get_person(missing))
                        sibling_name = person_name(graph.get_person(sibling_id))
                        candidates.append(self._candidate(
                            PredictedType.PARENT_CHILD, missing, sibling_id, confidence,
                            f"{missing_name} is in a union with {known_name}. {len(with_both)} sibling(s) "
                            f"have both parents, but {sibling_name} only has {known_name}",
                        ))

        logger.debug(f"{self.rule_id}: {len(candidates)} candidates for tree {tree_id}")
        return candidates

    def _confidence(self, siblings_with_both: int) -> float:
        if siblings_with_both >= 3:
            return self.many_siblings_confidence
        if siblings_with_both >= 1:
            return self.some_siblings_confidence
        return self.no_sibling_confidence

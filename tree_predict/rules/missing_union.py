from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
import logging
from typing import List

from tree_predict.model import PredictedType, PredictionCandidate
from .base import BaseRule, index_links, person_name, register_rule

logger = logging.getLogger(__name__)


@register_rule
@dataclass
class MissingUnionRule(BaseRule):
    """
    Co-parents without a union.

    If A and B are both recorded parents of the same child but no union links
    them, propose a union. More shared children means more confidence; a
    known opposite-sex pair adds a small boost.
    """
    rule_id: str = "missing_union"
    description: str = "Co-parents without a union"
    one_child_confidence: float = 80
    two_children_confidence: float = 90
    many_children_confidence: float = 95
    opposite_sex_boost: float = 5
    max_confidence: float = 99

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        graph = self._require_graph()
        candidates: List[PredictionCandidate] = []

        links = graph.parent_child_links(tree_id)
        children_by_parent, parents_by_child = index_links(links)
        checked = set()

        for child_id in sorted(parents_by_child):
            parent_ids = sorted(parents_by_child[child_id])
            if len(parent_ids) < 2:
                continue

            # Pairs come out as (lower id, higher id) so rescans produce the same key
            for parent_a, parent_b in combinations(parent_ids, 2):
                if (parent_a, parent_b) in checked:
                    continue
                checked.add((parent_a, parent_b))

                if graph.share_union(parent_a, parent_b):
                    continue

                shared = len(children_by_parent[parent_a] & children_by_parent[parent_b])
                if shared >= 3:
                    confidence = self.many_children_confidence
                elif shared == 2:
                    confidence = self.two_children_confidence
                else:
                    confidence = self.one_child_confidence

                person_a = graph.get_person(parent_a)
                person_b = graph.get_person(parent_b)
                if (person_a is not None and person_b is not None
                        and person_a.sex_known and person_b.sex_known
                        and person_a.sex != person_b.sex):
                    confidence = min(confidence + self.opposite_sex_boost, self.max_confidence)

                candidates.append(self._candidate(
                    PredictedType.UNION, parent_a, parent_b, confidence,
                    f"{person_name(person_a)} and {person_name(person_b)} are both parents of "
                    f"{shared} child(ren) but have no union",
                ))

        logger.debug(f"{self.rule_id}: {len(candidates)} candidates for tree {tree_id}")
        return candidates

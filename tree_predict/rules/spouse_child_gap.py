from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List

from tree_predict.model import PredictedType, PredictionCandidate
from .base import BaseRule, biological_parent_counts, index_links, person_name, register_rule

logger = logging.getLogger(__name__)


@register_rule
@dataclass
class SpouseChildGapRule(BaseRule):
    """
    Union partner not linked to the children of the other partner.

    If A and B share a union and A is a parent of C, but B is not, propose
    B -> C. Children born within the union's dates score higher; children
    born outside them may be step-children and score lower.
    """
    rule_id: str = "spouse_child_gap"
    description: str = "Spouse not linked to children"
    base_confidence: float = 90
    within_union_confidence: float = 95
    outside_union_confidence: float = 60

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        graph = self._require_graph()
        candidates: List[PredictionCandidate] = []

        links = graph.parent_child_links(tree_id)
        children_by_parent, parents_by_child = index_links(links)
        bio_counts = biological_parent_counts(links)
        seen = set()

        for union in graph.unions(tree_id):
            member_ids = union.person_ids
            if len(member_ids) < 2:
                continue

            for member_a in member_ids:
                for child_id in sorted(children_by_parent.get(member_a, ())):
                    child = graph.get_person(child_id)
                    for member_b in member_ids:
                        if member_b == member_a:
                            continue
                        if member_b in parents_by_child.get(child_id, ()):
                            continue
                        # At most two biological parents per child
                        if bio_counts.get(child_id, 0) >= 2:
                            continue
                        if (member_b, child_id) in seen:
                            continue
                        seen.add((member_b, child_id))

                        confidence = self.base_confidence
                        if child is not None and child.birth_date and union.start_date:
                            if union.covers(child.birth_date):
                                confidence = self.within_union_confidence
                            else:
                                confidence = self.outside_union_confidence

                        name_a = person_name(graph.get_person(member_a))
                        name_b = person_name(graph.get_person(member_b))
                        child_name = person_name(child)
                        candidates.append(self._candidate(
                            PredictedType.PARENT_CHILD, member_b, child_id, confidence,
                            f"{name_b} is in a union with {name_a} who is parent of {child_name}, "
                            f"but {name_b} is not linked as parent",
                        ))

        logger.debug(f"{self.rule_id}: {len(candidates)} candidates for tree {tree_id}")
        return candidates

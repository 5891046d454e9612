from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
import logging
from typing import Dict, List

from tree_predict.date_utils import years_between, within
from tree_predict.model import PredictedType, PredictionCandidate
from tree_predict.person import Person
from .base import BaseRule, biological_parent_counts, index_links, person_name, register_rule, top_candidates

logger = logging.getLogger(__name__)


@register_rule
@dataclass
class AgeFamilyRule(BaseRule):
    """
    Age gap and family membership.

    Within a family group, an older member born a parent's lifetime before a
    younger one may be that person's parent. Separately, opposite-sex
    co-parents of the same child who are close in age but have no union may
    be partners. Weakest of the rules: best read as corroboration for the
    structural rules.
    """
    rule_id: str = "age_family"
    description: str = "Age gap and family membership"
    min_gap_years: float = 15
    max_gap_years: float = 50
    ideal_min_gap_years: float = 20
    ideal_max_gap_years: float = 40
    ideal_confidence: float = 55
    other_confidence: float = 45
    max_partner_gap_years: float = 15
    union_confidence: float = 40
    max_candidates: int = 200

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        graph = self._require_graph()
        links = graph.parent_child_links(tree_id)
        dated = [p for p in graph.people(tree_id) if p.birth_date]
        if len(dated) < 2:
            return []

        candidates = self._parent_child_candidates(dated, links)
        candidates.extend(self._union_candidates(graph, links))

        logger.debug(f"{self.rule_id}: {len(candidates)} candidates for tree {tree_id}")
        return top_candidates(candidates, self.max_candidates)

    def _parent_child_candidates(self, dated: List[Person], links) -> List[PredictionCandidate]:
        candidates: List[PredictionCandidate] = []
        existing = {(l.parent_id, l.child_id) for l in links}
        bio_counts = biological_parent_counts(links)

        families: Dict[str, List[Person]] = {}
        for person in dated:
            if person.family_id:
                families.setdefault(person.family_id, []).append(person)

        for family_id in sorted(families):
            members = sorted(families[family_id], key=lambda p: p.id)
            if len(members) < 2:
                continue
            for older in members:
                for younger in members:
                    if older.id == younger.id:
                        continue
                    gap = years_between(older.birth_date, younger.birth_date)
                    if not within(gap, self.min_gap_years, self.max_gap_years):
                        continue
                    if (older.id, younger.id) in existing or (younger.id, older.id) in existing:
                        continue
                    if bio_counts.get(younger.id, 0) >= 2:
                        continue

                    if within(gap, self.ideal_min_gap_years, self.ideal_max_gap_years):
                        confidence = self.ideal_confidence
                    else:
                        confidence = self.other_confidence

                    candidates.append(self._candidate(
                        PredictedType.PARENT_CHILD, older.id, younger.id, confidence,
                        f"{person_name(older, native=True)} and {person_name(younger, native=True)} are in "
                        f"the same family with a {round(gap)}-year age gap",
                    ))
        return candidates

    def _union_candidates(self, graph, links) -> List[PredictionCandidate]:
        candidates: List[PredictionCandidate] = []
        _, parents_by_child = index_links(links)
        checked = set()

        for child_id in sorted(parents_by_child):
            for parent_a, parent_b in combinations(sorted(parents_by_child[child_id]), 2):
                if (parent_a, parent_b) in checked:
                    continue
                checked.add((parent_a, parent_b))

                person_a = graph.get_person(parent_a)
                person_b = graph.get_person(parent_b)
                if person_a is None or person_b is None:
                    continue
                if not (person_a.sex_known and person_b.sex_known) or person_a.sex == person_b.sex:
                    continue
                gap = years_between(person_a.birth_date, person_b.birth_date)
                if gap is None or abs(gap) > self.max_partner_gap_years:
                    continue
                if graph.share_union(parent_a, parent_b):
                    continue

                candidates.append(self._candidate(
                    PredictedType.UNION, parent_a, parent_b, self.union_confidence,
                    f"{person_name(person_a, native=True)} and {person_name(person_b, native=True)} are "
                    f"co-parents born {round(abs(gap))} year(s) apart with no union",
                ))
        return candidates

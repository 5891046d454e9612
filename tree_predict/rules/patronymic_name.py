from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, List, Tuple

from rapidfuzz import fuzz, process

from tree_predict.date_utils import years_between, within
from tree_predict.model import PredictedType, PredictionCandidate
from tree_predict.names import NameChain, decompose_name
from tree_predict.person import Person
from .base import BaseRule, biological_parent_counts, person_name, register_rule, top_candidates

logger = logging.getLogger(__name__)


@register_rule
@dataclass
class PatronymicNameRule(BaseRule):
    """
    Parent-child links implied by patronymic naming chains.

    In a name such as "Ahmad bin Ali bin Hassan" the second token names the
    father and the third the grandfather. If X's father token matches Y's
    given name, Y may be X's parent. The name alone is a weak signal, so the
    base confidence is low and corroborating evidence (male parent, same
    family group, plausible age gap, matching grandfather) raises it up to
    `max_confidence`.
    """
    rule_id: str = "patronymic_name"
    description: str = "Patronymic name match"
    base_confidence: float = 35
    male_parent_boost: float = 10
    same_family_boost: float = 10
    age_gap_boost: float = 10
    chain_boost: float = 10
    fuzzy_penalty: float = 5
    max_confidence: float = 65
    min_confidence: float = 40
    fuzzy_threshold: float = 90  # rapidfuzz ratio; 0 disables fuzzy matching
    min_gap_years: float = 15
    max_gap_years: float = 50
    impossible_gap_years: float = 60
    max_candidates: int = 200

    def detect(self, tree_id: str) -> List[PredictionCandidate]:
        graph = self._require_graph()
        candidates: List[PredictionCandidate] = []

        parsed: List[Tuple[Person, NameChain]] = []
        for person in graph.people(tree_id):
            chain = decompose_name(person.display_name)
            if chain.given and len(chain.given) > 1:
                parsed.append((person, chain))
        if len(parsed) < 2:
            return candidates

        links = graph.parent_child_links(tree_id)
        existing = {(l.parent_id, l.child_id) for l in links}
        bio_counts = biological_parent_counts(links)

        by_given: Dict[str, List[Tuple[Person, NameChain]]] = {}
        for person, chain in parsed:
            by_given.setdefault(chain.given, []).append((person, chain))
        given_names = list(by_given)

        for child, chain in parsed:
            father_token = chain.father
            if not father_token:
                continue
            if bio_counts.get(child.id, 0) >= 2:
                continue

            for given, exact in self._matching_given_names(father_token, by_given, given_names):
                for parent, parent_chain in by_given[given]:
                    if parent.id == child.id:
                        continue
                    if (parent.id, child.id) in existing:
                        continue

                    confidence = self.base_confidence
                    if parent.sex == 'M':
                        confidence += self.male_parent_boost
                    if child.family_id and child.family_id == parent.family_id:
                        confidence += self.same_family_boost

                    gap = years_between(parent.birth_date, child.birth_date)
                    if gap is not None:
                        if within(gap, self.min_gap_years, self.max_gap_years):
                            confidence += self.age_gap_boost
                        elif gap < 0 or gap > self.impossible_gap_years:
                            continue

                    chained = bool(chain.grandfather) and chain.grandfather == parent_chain.father
                    if chained:
                        confidence += self.chain_boost
                    if not exact:
                        confidence -= self.fuzzy_penalty

                    confidence = min(confidence, self.max_confidence)
                    if confidence < self.min_confidence:
                        continue

                    explanation = (f"{person_name(child, native=True)}'s second name matches "
                                   f"{person_name(parent, native=True)}'s given name (patronymic pattern")
                    if chained:
                        explanation += ", grandfather's name also matches"
                    if not exact:
                        explanation += ", approximate spelling"
                    explanation += ")"

                    candidates.append(self._candidate(
                        PredictedType.PARENT_CHILD, parent.id, child.id, confidence, explanation,
                    ))

        logger.debug(f"{self.rule_id}: {len(candidates)} candidates for tree {tree_id}")
        return top_candidates(candidates, self.max_candidates)

    def _matching_given_names(self, token: str, by_given: Dict[str, list], given_names: List[str]) -> List[Tuple[str, bool]]:
        """Given names equal to `token` (exact) or close to it (fuzzy)."""
        matches: List[Tuple[str, bool]] = []
        if token in by_given:
            matches.append((token, True))
        if self.fuzzy_threshold and len(token) > 2:
            for given, _score, _idx in process.extract(
                    token, given_names, scorer=fuzz.ratio,
                    score_cutoff=self.fuzzy_threshold, limit=None):
                if given != token:
                    matches.append((given, False))
        return matches

"""Detection rules: scanners that propose missing relationships in a tree.

Built-in rules:
    - SpouseChildGapRule: union partner not linked to the other partner's children
    - MissingUnionRule: co-parents with no union
    - SiblingParentGapRule: sibling missing the second parent
    - PatronymicNameRule: parent-child links implied by patronymic names
    - AgeFamilyRule: age gap + family membership, age-compatible co-parents

Extensibility:
    Create custom rules by:
        1. Subclass BaseRule (or satisfy the PredictionRule protocol)
        2. Implement detect(tree_id) -> list[PredictionCandidate]
        3. Use @register_rule decorator for automatic registration

Example:
    >>> from tree_predict.rules import BaseRule, register_rule
    >>> @register_rule
    ... @dataclass
    ... class MyCustomRule(BaseRule):
    ...     rule_id: str = "my_rule"
    ...     def detect(self, tree_id):
    ...         return []
"""

from .base import PredictionRule
from .base import BaseRule
from .base import register_rule
from .base import get_rule_registry
from .spouse_child_gap import SpouseChildGapRule
from .missing_union import MissingUnionRule
from .sibling_parent_gap import SiblingParentGapRule
from .patronymic_name import PatronymicNameRule
from .age_family import AgeFamilyRule

__all__ = [
    'PredictionRule',
    'BaseRule',
    'register_rule',
    'get_rule_registry',
    'SpouseChildGapRule',
    'MissingUnionRule',
    'SiblingParentGapRule',
    'PatronymicNameRule',
    'AgeFamilyRule',
]

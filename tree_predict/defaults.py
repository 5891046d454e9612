"""
Default detection rules built from configuration.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from .config import PredictionConfig
from .graph import GraphRepository
from .rules import BaseRule, get_rule_registry

logger = logging.getLogger(__name__)


def get_default_rules(config: PredictionConfig, graph: Optional[GraphRepository] = None) -> List[BaseRule]:
    """
    Create the registered rules that are enabled in config.

    Each rule is instantiated with its `rule_params` section as keyword
    arguments and bound to `graph`.

    Args:
        config: PredictionConfig instance with rule parameters.
        graph: Graph repository the rules read from.

    Returns:
        List[BaseRule]: Configured rules in registration order.
    """
    rules = []
    for rule_id, rule_class in get_rule_registry().items():
        if not config.rule_enabled(rule_id):
            logger.debug(f"Rule {rule_id} disabled by configuration")
            continue

        kwargs = config.params_for(rule_id)
        unknown = [k for k in kwargs if k not in rule_class.__dataclass_fields__]
        if unknown:
            raise ValueError(f"Unknown parameter(s) for rule {rule_id}: {', '.join(unknown)}")
        rules.append(rule_class(graph=graph, **kwargs))

    return rules

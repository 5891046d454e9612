from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _load_yaml(yaml_path: Path) -> Dict[str, Any]:
    if not yaml_path or not Path(yaml_path).exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
    try:
        with open(yaml_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing {yaml_path}: {e}")


@dataclass
class PredictionConfig:
    """
    Configuration for the prediction engine.

    Loads all configuration values from config.yaml in the package directory.
    Values given to from_dict() or found in a custom YAML file override the
    packaged defaults key by key.
    """
    # Rule execution
    max_workers: int = field(init=False)

    # Query / bulk defaults
    default_page_size: int = field(init=False)
    bulk_accept_min_confidence: float = field(init=False)

    # Rule toggles (nested dict)
    rules_enabled: Dict[str, bool] = field(init=False)

    # Rule constructor parameters (nested dict)
    rule_params: Dict[str, Dict[str, Any]] = field(init=False)

    def __post_init__(self):
        """Load configuration from the packaged YAML file."""
        self._apply(_load_yaml(DEFAULT_CONFIG_PATH), DEFAULT_CONFIG_PATH)

    def _apply(self, config_dict: Dict[str, Any], source: Optional[Path] = None) -> None:
        for key in self.__dataclass_fields__.keys():
            if key not in config_dict:
                raise ValueError(f"Required configuration field '{key}' not found in {source or 'config'}")
            object.__setattr__(self, key, config_dict[key])
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> PredictionConfig:
        """
        Load configuration from a specific YAML file.

        Args:
            yaml_path: Path to YAML config file.

        Returns:
            PredictionConfig: Configuration instance loaded from YAML.
        """
        return cls.from_dict(_load_yaml(Path(yaml_path)))

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> PredictionConfig:
        """
        Create configuration from a dictionary, falling back to config.yaml
        for any missing key. Nested rule_params are merged per rule.

        Args:
            config_dict (Dict[str, Any]): Dictionary with configuration values.
        Returns:
            PredictionConfig: Configuration instance.
        """
        merged = _load_yaml(DEFAULT_CONFIG_PATH)
        for key, value in (config_dict or {}).items():
            if key == 'rule_params' and isinstance(value, dict):
                params = {rule_id: dict(p or {}) for rule_id, p in merged.get('rule_params', {}).items()}
                for rule_id, overrides in value.items():
                    params.setdefault(rule_id, {}).update(overrides or {})
                merged['rule_params'] = params
            elif key == 'rules_enabled' and isinstance(value, dict):
                merged['rules_enabled'] = {**merged.get('rules_enabled', {}), **value}
            else:
                merged[key] = value
        instance = object.__new__(cls)
        instance._apply(merged)
        return instance

    def rule_enabled(self, rule_id: str) -> bool:
        # default: enabled unless explicitly false
        return self.rules_enabled.get(rule_id, True)

    def params_for(self, rule_id: str) -> Dict[str, Any]:
        return dict(self.rule_params.get(rule_id) or {})

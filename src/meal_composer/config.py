"""Configuration loading with defaults and CLI override merging."""

from __future__ import annotations

import copy
from pathlib import Path

import yaml

from meal_composer.errors import ValidationError
from meal_composer.generator import DEFAULT_COMMAND
from meal_composer.quantities import NON_SEASONING_TERMS, SEASONING_KEYWORDS, UNIT_SCHEMES
from meal_composer.scheduler import DEFAULT_SOLVER_TIME_LIMIT, HOUSEHOLD_PORTIONS

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "meal-composer" / "config.yaml"

DEFAULTS = {
    "household": {
        "default_size": "2 people",
        "portions": dict(HOUSEHOLD_PORTIONS),
    },
    "ledger": {
        "unit_scheme": "canonical",
        "seasoning_keywords": list(SEASONING_KEYWORDS),
        "non_seasoning_terms": list(NON_SEASONING_TERMS),
    },
    "scheduler": {
        "solver_time_limit_s": DEFAULT_SOLVER_TIME_LIMIT,
    },
    "retrieval": {
        "match_count": 5,
    },
    "generator": {
        "command": list(DEFAULT_COMMAND),
        "timeout_s": 120,
    },
    "store": {
        "plans_dir": "~/.local/share/meal-composer/plans",
    },
    "catalog": {
        "recipes_dir": "~/recipes",
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def validate_config(config: dict) -> dict:
    scheme = config["ledger"]["unit_scheme"]
    if scheme not in UNIT_SCHEMES:
        raise ValidationError(
            f"ledger.unit_scheme must be one of {', '.join(UNIT_SCHEMES)}, got {scheme!r}"
        )
    for size, portions in config["household"]["portions"].items():
        if isinstance(portions, bool) or not isinstance(portions, int) or portions < 1:
            raise ValidationError(
                f"household.portions[{size!r}] must be a positive integer, got {portions!r}"
            )
    match_count = config["retrieval"]["match_count"]
    if isinstance(match_count, bool) or not isinstance(match_count, int) or match_count < 1:
        raise ValidationError(f"retrieval.match_count must be a positive integer, got {match_count!r}")
    return config


def load_config(config_path: Path | None = None) -> dict:
    """Load settings from YAML, falling back to defaults.

    An explicitly given path must exist; the default path is optional.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path is not None:
            raise ValidationError(f"Config file not found: {config_path}")
        return copy.deepcopy(DEFAULTS)

    with open(path) as f:
        try:
            user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(user_config, dict):
        raise ValidationError(f"{path} must contain a mapping")
    return validate_config(deep_merge(copy.deepcopy(DEFAULTS), user_config))


def apply_cli_overrides(config: dict, **overrides: object) -> dict:
    """Apply CLI argument overrides to config.

    Supports flat keys that map into nested config:
      household -> household.default_size
      unit_scheme -> ledger.unit_scheme
      plans_dir -> store.plans_dir
      recipes_dir -> catalog.recipes_dir
      match_count -> retrieval.match_count
    """
    if overrides.get("household") is not None:
        config["household"]["default_size"] = overrides["household"]
    if overrides.get("unit_scheme") is not None:
        config["ledger"]["unit_scheme"] = overrides["unit_scheme"]
    if overrides.get("plans_dir") is not None:
        config["store"]["plans_dir"] = str(overrides["plans_dir"])
    if overrides.get("recipes_dir") is not None:
        config["catalog"]["recipes_dir"] = str(overrides["recipes_dir"])
    if overrides.get("match_count") is not None:
        config["retrieval"]["match_count"] = overrides["match_count"]

    return validate_config(config)


def ledger_options(config: dict) -> dict:
    """Keyword arguments for Ledger construction from the ledger section."""
    return {
        "seasoning_keywords": config["ledger"]["seasoning_keywords"],
        "non_seasoning_terms": config["ledger"]["non_seasoning_terms"],
    }


def expand_path(raw: str) -> Path:
    return Path(raw).expanduser()

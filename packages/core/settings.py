"""Generator options loaded from YAML files and BLOCKFORGE_* environment variables."""

import os
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

import yaml
from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "BLOCKFORGE_"

_ENV_FIELDS = {
    "ONE_BASED_INDEX": "one_based_index",
    "INDENT": "indent",
    "STATEMENT_PREFIX": "statement_prefix",
    "STATEMENT_SUFFIX": "statement_suffix",
    "INFINITE_LOOP_TRAP": "infinite_loop_trap",
    "COMMENT_WRAP": "comment_wrap",
}


class SettingsError(Exception):
    """Raised when a settings file or variable holds an invalid value."""
    pass


class GeneratorOptions(BaseModel):
    """Options shared by every language printer."""
    one_based_index: bool = True
    indent: str = "  "
    statement_prefix: Optional[str] = None
    statement_suffix: Optional[str] = None
    infinite_loop_trap: Optional[str] = None
    comment_wrap: int = 60
    extra_reserved_words: List[str] = []

    @field_validator("indent")
    @classmethod
    def indent_is_whitespace(cls, value: str) -> str:
        if value.strip():
            raise ValueError("indent must contain only whitespace")
        return value

    @field_validator("statement_prefix", "statement_suffix", "infinite_loop_trap")
    @classmethod
    def empty_hook_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for suffix, field in _ENV_FIELDS.items():
        raw = os.environ.get(ENV_PREFIX + suffix)
        if raw is not None:
            values[field] = raw
    return values


def load_options(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> GeneratorOptions:
    """
    Build generator options.

    Args:
        path: Optional YAML file with option keys at the top level
        overrides: Values that win over both the file and the environment

    Returns:
        Validated GeneratorOptions
    """
    values: Dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise SettingsError(f"Settings file not found: {config_path}")
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise SettingsError(f"Settings file {config_path} must contain a mapping")
        values.update(loaded)
        logger.debug(f"Loaded generator settings from {config_path}")

    values.update(_read_env())
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return GeneratorOptions.model_validate(values)
    except ValidationError as e:
        raise SettingsError(str(e)) from e

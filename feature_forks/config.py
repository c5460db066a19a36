"""
Suite Configuration
===================

Loads a suite definition from YAML, e.g.::

    engine: cucumber --no-color
    resource_roots: [src/test/resources]
    runtime_path: [steps]
    results_dir: build/cucumber/results
    reports_dir: build/cucumber/reports
    options:
      glue: [steps.billing]
      feature_roots: [features]
      tags: ["@smoke"]
      strict: true
      max_parallel_forks: 3
      system_properties:
        BASE_URL: http://localhost:8080

Relative paths resolve against the directory holding the YAML file.
Environment variables (read after ``load_dotenv``) override the file:

    FEATURE_FORKS_MAX_PARALLEL_FORKS   integer >= 1
    FEATURE_FORKS_TAGS                 comma separated tags
    FEATURE_FORKS_STRICT               1/true/yes or 0/false/no
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .models import RunOptions, WorkSource

logger = logging.getLogger(__name__)

ENV_MAX_PARALLEL_FORKS = "FEATURE_FORKS_MAX_PARALLEL_FORKS"
ENV_TAGS = "FEATURE_FORKS_TAGS"
ENV_STRICT = "FEATURE_FORKS_STRICT"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class SuiteConfig(BaseModel):
    """Everything needed to start a run."""

    engine: list[str] = Field(..., min_length=1)
    resource_roots: list[Path] = Field(default_factory=list)
    runtime_path: list[Path] = Field(default_factory=list)
    results_dir: Path = Path("build/features/results")
    reports_dir: Path = Path("build/features/reports")
    options: RunOptions = Field(default_factory=RunOptions)

    @field_validator("engine", mode="before")
    @classmethod
    def split_engine(cls, v: Any) -> Any:
        if isinstance(v, str):
            return shlex.split(v)
        return v

    def work_source(self) -> WorkSource:
        return WorkSource(
            resource_roots=self.resource_roots,
            runtime_path=self.runtime_path,
            engine_command=self.engine,
        )

    def with_options(self, **updates: Any) -> "SuiteConfig":
        """Copy with RunOptions fields replaced, re-validated."""
        merged = {**self.options.model_dump(), **updates}
        try:
            options = RunOptions(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid run options: {e}") from e
        return self.model_copy(update={"options": options})


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect RunOptions overrides from environment variables."""
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    forks = environ.get(ENV_MAX_PARALLEL_FORKS, "").strip()
    if forks:
        try:
            overrides["max_parallel_forks"] = int(forks)
        except ValueError:
            raise ConfigError(f"{ENV_MAX_PARALLEL_FORKS} must be an integer, got {forks!r}")

    tags = environ.get(ENV_TAGS, "").strip()
    if tags:
        overrides["tags"] = [t.strip() for t in tags.split(",") if t.strip()]

    strict = environ.get(ENV_STRICT, "").strip()
    if strict:
        overrides["strict"] = _parse_bool(ENV_STRICT, strict)

    return overrides


def _resolve(base: Path, value: Path) -> Path:
    return value if value.is_absolute() else (base / value).resolve()


def load_suite_config(path: Path, environ: Mapping[str, str] | None = None) -> SuiteConfig:
    """Load and validate a suite YAML file, applying environment overrides.

    Raises:
        ConfigError: file missing, not YAML, not a mapping, or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config at {path}: {e}") from e
    except (IOError, OSError) as e:
        raise ConfigError(f"Failed to read config at {path}: {e}") from e

    if not raw:
        raise ConfigError(f"Config at {path} is empty")
    if not isinstance(raw, dict):
        raise ConfigError(f"Config at {path} must be a YAML dictionary")

    try:
        config = SuiteConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config at {path}: {e}") from e

    base = path.parent.resolve()
    config = config.model_copy(update={
        "resource_roots": [_resolve(base, p) for p in config.resource_roots],
        "runtime_path": [_resolve(base, p) for p in config.runtime_path],
        "results_dir": _resolve(base, config.results_dir),
        "reports_dir": _resolve(base, config.reports_dir),
    })

    overrides = env_overrides(environ)
    if overrides:
        logger.debug("Applying environment overrides: %s", sorted(overrides))
        config = config.with_options(**overrides)
    return config

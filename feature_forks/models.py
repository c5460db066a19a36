"""Pydantic models shared by discovery, dispatch and result collection."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SnippetStyle(str, Enum):
    """Naming convention the engine uses for generated step snippets."""

    CAMELCASE = "camelcase"
    UNDERSCORE = "underscore"


class FeatureFile(BaseModel):
    """A discovered feature file and the logical name derived for it."""

    model_config = ConfigDict(frozen=True)

    path: Path  # Absolute path on disk
    name: str  # e.g. "billing.checkout", used for output file names


class RunOptions(BaseModel):
    """Read-only configuration snapshot for one suite run."""

    model_config = ConfigDict(frozen=True)

    glue: list[str] = Field(default_factory=list)
    feature_roots: list[str] = Field(default_factory=lambda: ["features"])
    tags: list[str] = Field(default_factory=list)
    strict: bool = False
    dry_run: bool = False
    monochrome: bool = False
    snippets: SnippetStyle = SnippetStyle.CAMELCASE
    max_parallel_forks: int = Field(default=1, ge=1)
    junit_report: bool = False
    system_properties: dict[str, str] = Field(default_factory=dict)
    worker_timeout: float | None = Field(default=None, gt=0)
    non_failing_statuses: list[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        # Set semantics, first occurrence keeps its place
        seen: list[str] = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen


class WorkSource(BaseModel):
    """Externally supplied roots to scan and the environment workers run in."""

    model_config = ConfigDict(frozen=True)

    resource_roots: list[Path] = Field(default_factory=list)
    runtime_path: list[Path] = Field(default_factory=list)
    engine_command: list[str] = Field(..., min_length=1)


class WorkerInvocation(BaseModel):
    """One feature paired with its argument list and output files."""

    model_config = ConfigDict(frozen=True)

    feature: FeatureFile
    args: list[str]
    results_file: Path
    junit_file: Path
    out_log_file: Path
    err_log_file: Path


class FeatureResult(BaseModel):
    """Scenario and step counts for one feature reported by a worker."""

    name: str = ""
    total_scenarios: int = Field(default=0, ge=0)
    failed_scenarios: int = Field(default=0, ge=0)
    total_steps: int = Field(default=0, ge=0)
    failed_steps: int = Field(default=0, ge=0)
    skipped_steps: int = Field(default=0, ge=0)
    pending_steps: int = Field(default=0, ge=0)
    undefined_steps: int = Field(default=0, ge=0)

    @property
    def had_failures(self) -> bool:
        return self.failed_scenarios > 0 or self.failed_steps > 0

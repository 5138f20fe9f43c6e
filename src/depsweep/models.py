from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class SourceFile:
    path: Path
    rel_path: str
    text: str


@dataclass(frozen=True)
class Manifest:
    path: Path
    name: str
    dependencies: dict[str, str]
    scripts: dict[str, str]
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def has_workspaces(self) -> bool:
        return bool(self.data.get("workspaces"))


@dataclass(frozen=True)
class CleanupConfig:
    ignore: tuple[str, ...] = ()
    ignore_patterns: tuple[str, ...] = ()
    strict: bool = False
    special_packages: dict[str, tuple[str, ...]] = field(default_factory=dict)
    usage_patterns: tuple[str, ...] = ()
    source: str | None = None  # config file name, None when defaults are used


@dataclass(frozen=True)
class Verdict:
    name: str
    keep: bool
    reason: str | None = None


@dataclass(frozen=True)
class Report:
    root: str
    project: str
    package_manager: str
    generated_at: str
    verdicts: dict[str, Verdict]
    ignored: list[str]
    monorepo: bool = False
    files_scanned: int = 0
    config_source: str | None = None

    @property
    def kept(self) -> list[str]:
        return [name for name, verdict in self.verdicts.items() if verdict.keep]

    @property
    def unused(self) -> list[str]:
        return [name for name, verdict in self.verdicts.items() if not verdict.keep]

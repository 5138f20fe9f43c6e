from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from depsweep.models import Manifest, SourceFile

log = logging.getLogger(__name__)

EXCLUDED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".next",
        "dist",
        "build",
        ".vercel",
        "coverage",
        ".nyc_output",
    }
)
SOURCE_EXTENSIONS = frozenset(
    {
        ".js",
        ".jsx",
        ".mjs",
        ".cjs",
        ".ts",
        ".tsx",
        ".mts",
        ".cts",
        ".json",
        ".md",
        ".css",
        ".scss",
        ".vue",
        ".svelte",
    }
)
# Declarations and ignore lists would count as string-literal references.
EXCLUDED_FILES = frozenset({"package.json", "package-lock.json", ".cleanupdepsrc.json"})
DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
    "bundledDependencies",
    "bundleDependencies",
    "peerDependenciesMeta",
    "overrides",
    "resolutions",
)


def load_corpus(
    root: Path,
    excluded_dir_names: Iterable[str] = EXCLUDED_DIRS,
    included_extensions: Iterable[str] = SOURCE_EXTENSIONS,
    excluded_file_names: Iterable[str] = EXCLUDED_FILES,
) -> tuple[SourceFile, ...]:
    """Read every candidate source file under ``root`` once.

    Excluded directories are pruned before descending. Files that cannot be
    read or decoded are left out of the corpus.
    """
    excluded_dirs = set(excluded_dir_names)
    extensions = set(included_extensions)
    excluded_files = set(excluded_file_names)
    files: list[SourceFile] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded_dirs)
        for name in sorted(filenames):
            if name in excluded_files:
                continue
            if os.path.splitext(name)[1] not in extensions:
                continue
            full_path = Path(dirpath) / name
            try:
                text = full_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            files.append(
                SourceFile(
                    path=full_path,
                    rel_path=full_path.relative_to(root).as_posix(),
                    text=text,
                )
            )
    files.sort(key=lambda f: f.rel_path)
    log.debug("Loaded %d files from %s", len(files), root)
    return tuple(files)


def manifest_source(manifest: Manifest) -> SourceFile:
    """Render the manifest without its dependency sections.

    Keys such as ``eslintConfig`` or ``jest`` still reference tooling by name
    and are scanned like any other file.
    """
    data = {k: v for k, v in manifest.data.items() if k not in DEPENDENCY_SECTIONS}
    pnpm = data.get("pnpm")
    if isinstance(pnpm, dict) and "overrides" in pnpm:
        data["pnpm"] = {k: v for k, v in pnpm.items() if k != "overrides"}
    return SourceFile(
        path=manifest.path,
        rel_path=manifest.path.name,
        text=json.dumps(data, indent=2),
    )

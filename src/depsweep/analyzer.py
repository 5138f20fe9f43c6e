from __future__ import annotations

import functools
import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from depsweep.config import detect_package_manager, load_config, load_manifest
from depsweep.corpus import load_corpus, manifest_source
from depsweep.ignore import partition
from depsweep.models import CleanupConfig, Manifest, Report, SourceFile, Verdict
from depsweep.special import (
    TYPES_PREFIX,
    SpecialCase,
    SpecialContext,
    build_registry,
    is_special_cased,
    types_base_name,
)
from depsweep.usage import default_patterns, is_used, is_used_in_scripts

log = logging.getLogger(__name__)

INSTALL_DIR = "node_modules"

REASON_CODE = "Used in code"
REASON_SCRIPTS = "Used in scripts"
REASON_SPECIAL = "Special package"

Verdicts = dict[str, Verdict]
PeerLookup = Callable[[str], list[str]]


@dataclass(frozen=True)
class Session:
    """Everything one analysis run reads. Built once, never mutated."""

    root: Path
    manifest: Manifest
    config: CleanupConfig
    package_manager: str
    corpus: tuple[SourceFile, ...]
    context: SpecialContext
    registry: tuple[SpecialCase, ...]
    patterns: tuple[str, ...]

    @classmethod
    def build(cls, root: Path, config: CleanupConfig | None = None) -> Session:
        root = root.resolve()
        manifest = load_manifest(root)
        if config is None:
            config = load_config(root)
        package_manager = detect_package_manager(root)
        corpus = load_corpus(root) + (manifest_source(manifest),)
        context = SpecialContext(
            root=root,
            manifest_data=manifest.data,
            scripts=manifest.scripts,
            package_manager=package_manager,
            declared=frozenset(manifest.dependencies),
        )
        return cls(
            root=root,
            manifest=manifest,
            config=config,
            package_manager=package_manager,
            corpus=corpus,
            context=context,
            registry=build_registry(config.special_packages),
            patterns=default_patterns(config.strict, config.usage_patterns),
        )

    def peer_dependencies(self, name: str) -> list[str]:
        return read_peer_dependencies(self.root, name)


def read_peer_dependencies(root: Path, name: str) -> list[str]:
    """Peer dependency names from ``node_modules/<name>/package.json``.

    Missing or malformed metadata means no peers.
    """
    path = root / INSTALL_DIR / name / "package.json"
    if not path.is_file():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        log.debug("Could not read peer dependencies for %s", name)
        return []
    peers = data.get("peerDependencies") if isinstance(data, dict) else None
    if not isinstance(peers, dict):
        return []
    return list(peers)


def direct_pass(
    names: Iterable[str],
    corpus: Sequence[SourceFile],
    scripts: Mapping[str, str],
    context: SpecialContext,
    registry: Iterable[SpecialCase],
    patterns: Sequence[str] | None = None,
) -> Verdicts:
    registry = tuple(registry)
    verdicts: Verdicts = {}
    for name in names:
        if is_used(name, corpus, patterns):
            reason = REASON_CODE
        elif is_used_in_scripts(name, scripts):
            reason = REASON_SCRIPTS
        elif is_special_cased(name, context, registry):
            reason = REASON_SPECIAL
        else:
            reason = None
        verdicts[name] = Verdict(name, keep=reason is not None, reason=reason)
    return verdicts


def peer_pass(verdicts: Mapping[str, Verdict], peers: PeerLookup) -> Verdicts:
    """Rescue unkept packages that a kept package lists as peers.

    Only packages kept in the incoming snapshot are inspected, so a package
    rescued here does not rescue its own peers.
    """
    result = dict(verdicts)
    for name, verdict in verdicts.items():
        if not verdict.keep:
            continue
        for peer in peers(name):
            current = result.get(peer)
            if current is None or current.keep:
                continue
            result[peer] = Verdict(peer, keep=True, reason=f"Peer dependency of {name}")
            log.debug("Rescued %s (peer of %s)", peer, name)
    return result


def types_pass(verdicts: Mapping[str, Verdict]) -> Verdicts:
    result = dict(verdicts)
    for name in verdicts:
        if not name.startswith(TYPES_PREFIX):
            continue
        base = types_base_name(name)
        base_verdict = verdicts.get(base)
        if base_verdict is not None and base_verdict.keep:
            result[name] = Verdict(name, keep=True, reason=f"Type definitions for {base}")
    return result


def classify(
    names: Iterable[str],
    corpus: Sequence[SourceFile],
    scripts: Mapping[str, str],
    context: SpecialContext,
    registry: Iterable[SpecialCase] | None = None,
    patterns: Sequence[str] | None = None,
    peers: PeerLookup | None = None,
) -> Verdicts:
    if registry is None:
        registry = build_registry()
    if peers is None:
        peers = functools.partial(read_peer_dependencies, context.root)
    verdicts = direct_pass(names, corpus, scripts, context, registry, patterns)
    verdicts = peer_pass(verdicts, peers)
    return types_pass(verdicts)


def analyze(root: Path, config: CleanupConfig | None = None) -> Report:
    session = Session.build(root, config)
    names, ignored = partition(
        session.manifest.dependencies,
        session.config.ignore,
        session.config.ignore_patterns,
    )
    for name in ignored:
        log.debug("Ignoring %s", name)
    verdicts = classify(
        names,
        session.corpus,
        session.manifest.scripts,
        session.context,
        registry=session.registry,
        patterns=session.patterns,
        peers=session.peer_dependencies,
    )
    for verdict in verdicts.values():
        log.debug(
            "%s: %s",
            verdict.name,
            f"KEEP ({verdict.reason})" if verdict.keep else "UNUSED",
        )
    return Report(
        root=str(session.root),
        project=session.manifest.name,
        package_manager=session.package_manager,
        generated_at=datetime.now(timezone.utc).isoformat(),
        verdicts=verdicts,
        ignored=ignored,
        monorepo=session.manifest.has_workspaces,
        # the synthetic manifest entry is not a project file
        files_scanned=len(session.corpus) - 1,
        config_source=session.config.source,
    )


def write_report(path: Path, report: Report) -> None:
    data = asdict(report)
    data["kept"] = report.kept
    data["unused"] = report.unused
    path.write_text(json.dumps(data, indent=2, sort_keys=True))

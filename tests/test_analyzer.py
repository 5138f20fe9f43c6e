from __future__ import annotations

import json
from pathlib import Path

import pytest

from depsweep.analyzer import (
    analyze,
    classify,
    direct_pass,
    peer_pass,
    read_peer_dependencies,
    types_pass,
    write_report,
)
from depsweep.models import CleanupConfig, SourceFile, Verdict
from depsweep.special import SpecialContext, build_registry


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def _project(root: Path, dependencies: dict[str, str], **extra: object) -> None:
    _write(root / "package.json", json.dumps({"name": "demo", "dependencies": dependencies, **extra}))


def _context(root: Path, declared: set[str]) -> SpecialContext:
    return SpecialContext(
        root=root,
        manifest_data={},
        scripts={},
        package_manager="npm",
        declared=frozenset(declared),
    )


def test_unused_package_is_reported(tmp_path: Path) -> None:
    _project(tmp_path, {"lodash": "^4", "left-pad": "^1"})
    _write(tmp_path / "src" / "index.js", "const _ = require('lodash');\n")

    report = analyze(tmp_path)

    assert report.verdicts["lodash"] == Verdict("lodash", keep=True, reason="Used in code")
    assert report.verdicts["left-pad"].keep is False
    assert report.unused == ["left-pad"]
    assert report.kept == ["lodash"]


def test_declarations_alone_do_not_count_as_usage(tmp_path: Path) -> None:
    _project(tmp_path, {"left-pad": "^1"}, devDependencies={"prettier": "^3"})
    _write(tmp_path / "package-lock.json", '{"packages": {"node_modules/left-pad": {}}}')

    report = analyze(tmp_path)

    assert report.unused == ["left-pad", "prettier"]


def test_manifest_config_keys_count_as_usage(tmp_path: Path) -> None:
    _project(
        tmp_path,
        {},
        devDependencies={"eslint-config-prettier": "^9"},
        eslintConfig={"extends": ["eslint-config-prettier"]},
    )

    report = analyze(tmp_path)

    assert report.verdicts["eslint-config-prettier"].reason == "Used in code"


def test_script_usage(tmp_path: Path) -> None:
    _project(tmp_path, {"rimraf": "^5"}, scripts={"clean": "rimraf dist"})

    report = analyze(tmp_path)

    assert report.verdicts["rimraf"].reason == "Used in scripts"


def test_special_package_with_config_file(tmp_path: Path) -> None:
    _project(tmp_path, {"typescript": "^5"})
    _write(tmp_path / "tsconfig.json", '{"compilerOptions": {}}')

    report = analyze(tmp_path)

    assert report.verdicts["typescript"] == Verdict("typescript", True, "Special package")


def test_types_follow_kept_base(tmp_path: Path) -> None:
    _project(tmp_path, {"react": "^18", "@types/react": "^18"})
    _write(tmp_path / "src" / "App.tsx", "import React from 'react';\n")

    report = analyze(tmp_path)

    assert report.verdicts["react"].keep
    assert report.verdicts["@types/react"].keep
    assert "react" in (report.verdicts["@types/react"].reason or "")


def test_ignore_patterns_exclude_from_classification(tmp_path: Path) -> None:
    _project(tmp_path, {"@types/node": "^20", "left-pad": "^1"})
    _write(tmp_path / ".cleanupdepsrc", '{"ignorePatterns": ["@types/*"]}')

    report = analyze(tmp_path)

    assert "@types/node" not in report.verdicts
    assert "@types/node" not in report.kept
    assert "@types/node" not in report.unused
    assert report.ignored == ["@types/node"]


def test_ignore_list_beats_any_evidence(tmp_path: Path) -> None:
    _project(tmp_path, {"lodash": "^4", "dayjs": "^1"})
    _write(tmp_path / "index.js", "require('lodash')\n")

    report = analyze(tmp_path, CleanupConfig(ignore=("lodash", "dayjs")))

    assert report.verdicts == {}
    assert report.ignored == ["lodash", "dayjs"]


def test_strict_config(tmp_path: Path) -> None:
    _project(tmp_path, {"chalk": "^5"})
    _write(tmp_path / "index.js", "console.log('chalk')\n")

    assert analyze(tmp_path).unused == []
    assert analyze(tmp_path, CleanupConfig(strict=True)).unused == ["chalk"]


def test_peer_rescue_from_installed_metadata(tmp_path: Path) -> None:
    _project(tmp_path, {"react-redux": "^9", "redux": "^5"})
    _write(tmp_path / "store.js", "import { Provider } from 'react-redux';\n")
    _write(
        tmp_path / "node_modules" / "react-redux" / "package.json",
        json.dumps({"peerDependencies": {"redux": "^5", "react": "^18"}}),
    )

    report = analyze(tmp_path)

    assert report.verdicts["redux"] == Verdict("redux", True, "Peer dependency of react-redux")
    assert "react" not in report.verdicts


def test_broken_peer_metadata_is_ignored(tmp_path: Path) -> None:
    _project(tmp_path, {"react-redux": "^9", "redux": "^5"})
    _write(tmp_path / "store.js", "import { Provider } from 'react-redux';\n")
    _write(tmp_path / "node_modules" / "react-redux" / "package.json", "{broken")

    report = analyze(tmp_path)

    assert report.unused == ["redux"]


def test_read_peer_dependencies(tmp_path: Path) -> None:
    _write(
        tmp_path / "node_modules" / "@scope" / "ui" / "package.json",
        json.dumps({"peerDependencies": {"react": "*", "react-dom": "*"}}),
    )
    _write(tmp_path / "node_modules" / "plain" / "package.json", '{"name": "plain"}')
    _write(tmp_path / "node_modules" / "odd" / "package.json", '{"peerDependencies": ["x"]}')

    assert read_peer_dependencies(tmp_path, "@scope/ui") == ["react", "react-dom"]
    assert read_peer_dependencies(tmp_path, "plain") == []
    assert read_peer_dependencies(tmp_path, "odd") == []
    assert read_peer_dependencies(tmp_path, "missing") == []


def test_peer_rescue_is_single_level() -> None:
    verdicts = {
        "a": Verdict("a", True, "Used in code"),
        "b": Verdict("b", False),
        "c": Verdict("c", False),
    }
    peers = {"a": ["b"], "b": ["c"]}

    result = peer_pass(verdicts, lambda name: peers.get(name, []))

    assert result["b"] == Verdict("b", True, "Peer dependency of a")
    assert result["c"].keep is False


def test_peer_rescue_keeps_existing_reason() -> None:
    verdicts = {
        "a": Verdict("a", True, "Used in code"),
        "b": Verdict("b", True, "Used in scripts"),
    }

    result = peer_pass(verdicts, lambda name: ["b"] if name == "a" else [])

    assert result["b"].reason == "Used in scripts"


def test_types_pass_requires_kept_base() -> None:
    verdicts = {
        "foo": Verdict("foo", True, "Used in code"),
        "@types/foo": Verdict("@types/foo", False),
        "bar": Verdict("bar", False),
        "@types/bar": Verdict("@types/bar", False),
        "@types/baz": Verdict("@types/baz", True, "Special package"),
    }

    result = types_pass(verdicts)

    assert result["@types/foo"] == Verdict("@types/foo", True, "Type definitions for foo")
    assert result["@types/bar"].keep is False
    assert result["@types/baz"].reason == "Special package"


def test_types_for_unkept_base_follow_direct_evidence(tmp_path: Path) -> None:
    # @types/bar is kept because bar is declared, even though bar itself is unused
    corpus = [SourceFile(tmp_path / "a.js", "a.js", "require('foo')")]
    names = ["foo", "bar", "@types/foo", "@types/bar", "@types/qux"]
    ctx = _context(tmp_path, set(names))

    verdicts = classify(names, corpus, {}, ctx, peers=lambda name: [])

    assert verdicts["bar"].keep is False
    assert verdicts["@types/bar"] == Verdict("@types/bar", True, "Special package")
    assert verdicts["@types/foo"].reason == "Type definitions for foo"
    assert verdicts["@types/qux"].keep is False


def test_passes_are_monotonic(tmp_path: Path) -> None:
    corpus = [SourceFile(tmp_path / "a.js", "a.js", "import x from 'x';\nrequire('y')")]
    names = ["x", "y", "z", "w", "@types/x", "@types/w"]
    ctx = _context(tmp_path, set(names))
    peers = {"x": ["z"], "z": ["w"]}

    first = direct_pass(names, corpus, {}, ctx, build_registry())
    second = peer_pass(first, lambda name: peers.get(name, []))
    third = types_pass(second)

    def kept(verdicts: dict[str, Verdict]) -> set[str]:
        return {name for name, v in verdicts.items() if v.keep}

    assert kept(first) <= kept(second) <= kept(third)
    assert kept(third) == {"x", "y", "z", "@types/x", "@types/w"}


def test_analysis_is_idempotent(tmp_path: Path) -> None:
    _project(tmp_path, {"lodash": "^4", "left-pad": "^1", "react": "^18", "@types/react": "^18"})
    _write(tmp_path / "index.js", "import React from 'react';\n")

    first = analyze(tmp_path)
    second = analyze(tmp_path)

    assert first.verdicts == second.verdicts


def test_write_report(tmp_path: Path) -> None:
    _project(tmp_path, {"lodash": "^4", "left-pad": "^1"}, workspaces=["packages/*"])
    _write(tmp_path / "index.js", "require('lodash')\n")
    report = analyze(tmp_path)

    out = tmp_path / "report.json"
    write_report(out, report)
    data = json.loads(out.read_text())

    assert data["unused"] == ["left-pad"]
    assert data["kept"] == ["lodash"]
    assert data["monorepo"] is True
    assert data["verdicts"]["lodash"]["reason"] == "Used in code"


@pytest.mark.parametrize(
    "extra",
    [
        {"overrides": {"left-pad": "1.3.0"}},
        {"resolutions": {"left-pad": "1.3.0"}},
        {"peerDependenciesMeta": {"left-pad": {"optional": True}}},
        {"pnpm": {"overrides": {"left-pad": "1.3.0"}}},
    ],
)
def test_version_pins_do_not_count_as_usage(tmp_path: Path, extra: dict[str, object]) -> None:
    _project(tmp_path, {"left-pad": "^1"}, **extra)

    report = analyze(tmp_path)

    assert report.unused == ["left-pad"]


def test_ignored_peer_is_never_classified(tmp_path: Path) -> None:
    _project(tmp_path, {"react-redux": "^9", "redux": "^5"})
    _write(tmp_path / "store.js", "import { Provider } from 'react-redux';\n")
    _write(
        tmp_path / "node_modules" / "react-redux" / "package.json",
        json.dumps({"peerDependencies": {"redux": "^5"}}),
    )

    report = analyze(tmp_path, CleanupConfig(ignore=("redux",)))

    assert "redux" not in report.verdicts
    assert report.kept == ["react-redux"]
    assert report.ignored == ["redux"]


def test_report_records_config_and_file_count(tmp_path: Path) -> None:
    _project(tmp_path, {"lodash": "^4"})
    _write(tmp_path / "a.js", "require('lodash')\n")
    _write(tmp_path / "b.ts", "")
    _write(tmp_path / ".cleanupdepsrc", '{"ignore": []}')

    report = analyze(tmp_path)

    assert report.files_scanned == 2
    assert report.config_source == ".cleanupdepsrc"

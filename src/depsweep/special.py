"""Packages whose presence is justified by a companion artifact.

Tooling such as type checkers, linters or bundlers is rarely imported from
source. The registry below keeps such a package when its config file (or some
other marker) is present. Entries are checked in order and the first entry
whose matcher accepts a name decides.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

TYPES_PREFIX = "@types/"


@dataclass(frozen=True)
class SpecialContext:
    root: Path
    manifest_data: Mapping[str, Any]
    scripts: Mapping[str, str]
    package_manager: str
    declared: frozenset[str]

    def exists(self, *names: str) -> bool:
        return any((self.root / name).exists() for name in names)

    def script_mentions(self, text: str) -> bool:
        return any(text in command for command in self.scripts.values())


Predicate = Callable[[str, SpecialContext], bool]


@dataclass(frozen=True)
class SpecialCase:
    name: str
    predicate: Predicate
    prefix: bool = False

    def matches(self, package: str) -> bool:
        if self.prefix:
            return package.startswith(self.name)
        return package == self.name


def types_base_name(package: str) -> str:
    """``@types/foo`` -> ``foo``, ``@types/babel__core`` -> ``@babel/core``."""
    base = package.replace(TYPES_PREFIX, "", 1)
    if "__" in base:
        scope, _, rest = base.partition("__")
        return f"@{scope}/{rest}"
    return base


def config_files(*names: str) -> Predicate:
    return lambda _package, ctx: ctx.exists(*names)


def manifest_key(key: str) -> Predicate:
    return lambda _package, ctx: bool(ctx.manifest_data.get(key))


def package_manager_is(manager: str) -> Predicate:
    return lambda _package, ctx: ctx.package_manager == manager


def base_declared(base: str | None = None) -> Predicate:
    def predicate(package: str, ctx: SpecialContext) -> bool:
        return (base or types_base_name(package)) in ctx.declared

    return predicate


def _any(*predicates: Predicate) -> Predicate:
    return lambda package, ctx: any(p(package, ctx) for p in predicates)


def _always(_package: str, _ctx: SpecialContext) -> bool:
    return True


BUILTIN_SPECIAL_CASES: tuple[SpecialCase, ...] = (
    # build tools and configs
    SpecialCase("typescript", config_files("tsconfig.json")),
    SpecialCase("eslint", config_files(".eslintrc.json", ".eslintrc.js", "eslint.config.js")),
    SpecialCase("prettier", config_files(".prettierrc", "prettier.config.js", ".prettierrc.json")),
    SpecialCase("postcss", config_files("postcss.config.js", "postcss.config.mjs")),
    SpecialCase("tailwindcss", config_files("tailwind.config.js", "tailwind.config.ts")),
    SpecialCase("babel", config_files(".babelrc", "babel.config.js")),
    SpecialCase("webpack", config_files("webpack.config.js")),
    SpecialCase("vite", config_files("vite.config.js", "vite.config.ts")),
    SpecialCase("rollup", config_files("rollup.config.js")),
    # git hooks
    SpecialCase("husky", config_files(".husky")),
    SpecialCase("lint-staged", manifest_key("lint-staged")),
    # testing
    SpecialCase("jest", _any(config_files("jest.config.js"), manifest_key("jest"))),
    SpecialCase("vitest", config_files("vitest.config.js", "vitest.config.ts")),
    SpecialCase("cypress", config_files("cypress.config.js")),
    # environment
    SpecialCase("dotenv", config_files(".env", ".env.local")),
    SpecialCase("next", lambda _package, ctx: ctx.script_mentions("next")),
    SpecialCase("pnpm", package_manager_is("pnpm")),
    SpecialCase("yarn", package_manager_is("yarn")),
    # type packages
    SpecialCase("@types/node", _always),
    SpecialCase("@types/react", base_declared("react")),
    SpecialCase("@types/react-dom", base_declared("react-dom")),
    SpecialCase(TYPES_PREFIX, base_declared(), prefix=True),
)


def build_registry(
    extra: Mapping[str, Iterable[str]] | None = None,
    builtins: Iterable[SpecialCase] = BUILTIN_SPECIAL_CASES,
) -> tuple[SpecialCase, ...]:
    """User entries (package -> companion files) take precedence over builtins."""
    entries = [SpecialCase(name, config_files(*files)) for name, files in (extra or {}).items()]
    entries.extend(builtins)
    return tuple(entries)


def is_special_cased(
    package: str,
    ctx: SpecialContext,
    registry: Iterable[SpecialCase] = BUILTIN_SPECIAL_CASES,
) -> bool:
    for entry in registry:
        if entry.matches(package):
            return bool(entry.predicate(package, ctx))
    return False

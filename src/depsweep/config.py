from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from depsweep.exceptions import ManifestError
from depsweep.models import CleanupConfig, Manifest

log = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
CONFIG_FILES = (".cleanupdepsrc", ".cleanupdepsrc.json")
# Checked in order, the first lockfile found wins.
LOCKFILES = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
)
DEFAULT_PACKAGE_MANAGER = "npm"
UNINSTALL_COMMANDS = {
    "npm": "uninstall",
    "yarn": "remove",
    "pnpm": "remove",
}


def load_manifest(root: Path) -> Manifest:
    path = root / MANIFEST_NAME
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestError(str(path), exc.strerror or str(exc)) from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ManifestError(str(path), str(exc)) from exc
    if not isinstance(data, dict):
        raise ManifestError(str(path), "expected a JSON object")

    dependencies: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        # devDependencies are merged last and win on collision.
        dependencies.update(_mapping(data.get(section)))
    return Manifest(
        path=path,
        name=str(data.get("name") or "Unknown Project"),
        dependencies=dependencies,
        scripts={k: v for k, v in _mapping(data.get("scripts")).items() if isinstance(v, str)},
        data=data,
    )


def load_config(root: Path) -> CleanupConfig:
    """Load the first local config file found under ``root``.

    A config file that is not valid JSON is reported and ignored, the run
    continues with empty ignore lists.
    """
    for name in CONFIG_FILES:
        path = root / name
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            log.warning("Invalid config file %s, ignoring", name)
            continue
        if not isinstance(data, dict):
            log.warning("Invalid config file %s, ignoring", name)
            continue
        log.info("Loaded config from %s", name)
        return _config_from_dict(data, source=name)
    return CleanupConfig()


def detect_package_manager(root: Path) -> str:
    for lockfile, manager in LOCKFILES:
        if (root / lockfile).exists():
            return manager
    return DEFAULT_PACKAGE_MANAGER


def _config_from_dict(data: dict[str, Any], source: str) -> CleanupConfig:
    special: dict[str, tuple[str, ...]] = {}
    raw_special = data.get("specialPackages") or {}
    if isinstance(raw_special, dict):
        for name, files in raw_special.items():
            special[str(name)] = _string_list(files, f"specialPackages.{name}")
    else:
        log.warning("Config key specialPackages must be an object, ignoring")
    return CleanupConfig(
        ignore=_string_list(data.get("ignore"), "ignore"),
        ignore_patterns=_string_list(data.get("ignorePatterns"), "ignorePatterns"),
        strict=_flag(data.get("strict", False), "strict"),
        special_packages=special,
        usage_patterns=_string_list(data.get("usagePatterns"), "usagePatterns"),
        source=source,
    )


def _flag(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    log.warning("Config key %s must be true or false, ignoring", key)
    return False


def _string_list(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        log.warning("Config key %s must be a list of strings, ignoring", key)
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}

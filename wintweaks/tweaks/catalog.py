"""Tweak catalog loader

Reads declarative tweak data (YAML) and builds strategy objects. The data
file is validated strictly: an unknown kind, a missing field or a
duplicate id aborts loading with CatalogError.

Schema (version 1):

    schema: 1
    tweaks:
      - id: disable-cortana
        kind: registry | service | command
        title: ...
        description: ...
        category: ...
        safety: safe | caution | danger
        # registry
        batchable: true
        settings:
          - {target: ..., field: ..., value: 0, revert_value: null, type: REG_DWORD}
        # service
        services: [{name: WSearch, revert: auto}]
        stop_on_apply: false
        allow_missing: false
        # command
        apply: [...]
        revert: [...]
        check: {query: ..., expect: ...}   # or expect_absent
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..errors import CatalogError
from .base import Tweak
from .registry import TweakRegistry
from .strategies import CommandTweak, RegistryTweak, RegistryValue, ServiceTweak

DEFAULT_CATALOG_PATH = Path(__file__).parent.parent / "data" / "tweaks.yaml"
SUPPORTED_SCHEMA = 1


def _meta(raw: Dict[str, Any]) -> Dict[str, Any]:
    meta = {
        "description": str(raw.get("description", "")),
        "safety": str(raw.get("safety", "safe")),
    }
    if raw.get("category"):
        meta["category"] = str(raw["category"])
    return meta


def _build_registry(tweak_id: str, title: str, raw: Dict[str, Any]) -> RegistryTweak:
    settings_raw = raw.get("settings")
    if not isinstance(settings_raw, list) or not settings_raw:
        raise CatalogError(f"tweak {tweak_id}: settings must be a non-empty list")

    settings: List[RegistryValue] = []
    for item in settings_raw:
        if not isinstance(item, dict):
            raise CatalogError(f"tweak {tweak_id}: each setting must be a mapping")
        missing = [k for k in ("target", "field", "value") if k not in item]
        if missing:
            raise CatalogError(f"tweak {tweak_id}: setting missing {', '.join(missing)}")
        settings.append(RegistryValue(
            target=str(item["target"]),
            field=str(item["field"]),
            on_value=item["value"],
            off_value=item.get("revert_value"),
            value_type=str(item.get("type", "REG_DWORD")),
        ))

    return RegistryTweak(tweak_id, title, settings,
                         batchable=bool(raw.get("batchable", True)), **_meta(raw))


def _build_service(tweak_id: str, title: str, raw: Dict[str, Any]) -> ServiceTweak:
    services_raw = raw.get("services")
    if not isinstance(services_raw, list) or not services_raw:
        raise CatalogError(f"tweak {tweak_id}: services must be a non-empty list")

    services = []
    for item in services_raw:
        if not isinstance(item, dict) or "name" not in item:
            raise CatalogError(f"tweak {tweak_id}: each service needs a name")
        services.append((str(item["name"]), str(item.get("revert", "demand"))))

    return ServiceTweak(
        tweak_id, title, services,
        stop_on_apply=bool(raw.get("stop_on_apply", False)),
        allow_missing=bool(raw.get("allow_missing", False)),
        **_meta(raw)
    )


def _build_command(tweak_id: str, title: str, raw: Dict[str, Any]) -> CommandTweak:
    apply_cmds = raw.get("apply")
    if not isinstance(apply_cmds, list) or not apply_cmds:
        raise CatalogError(f"tweak {tweak_id}: apply must be a non-empty list")
    revert_cmds = raw.get("revert")
    if revert_cmds is not None and not isinstance(revert_cmds, list):
        raise CatalogError(f"tweak {tweak_id}: revert must be a list")

    check = raw.get("check") or {}
    if not isinstance(check, dict):
        raise CatalogError(f"tweak {tweak_id}: check must be a mapping")

    return CommandTweak(
        tweak_id, title,
        apply=[str(c) for c in apply_cmds],
        revert=[str(c) for c in revert_cmds] if revert_cmds else None,
        check_query=check.get("query"),
        expect=check.get("expect"),
        expect_absent=check.get("expect_absent"),
        **_meta(raw)
    )


_BUILDERS = {
    "registry": _build_registry,
    "service": _build_service,
    "command": _build_command,
}


def build_tweak(raw: Dict[str, Any]) -> Tweak:
    """Build one tweak from its declarative record"""
    if not isinstance(raw, dict):
        raise CatalogError("tweak entry must be a mapping")

    tweak_id = str(raw.get("id", "")).strip()
    if not tweak_id:
        raise CatalogError("tweak entry without id")
    title = str(raw.get("title", "")).strip()
    if not title:
        raise CatalogError(f"tweak {tweak_id}: title is required")

    kind = raw.get("kind")
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise CatalogError(f"tweak {tweak_id}: unknown kind {kind!r}")

    try:
        return builder(tweak_id, title, raw)
    except ValueError as e:
        raise CatalogError(str(e)) from e


def load_catalog(data: Union[str, Dict[str, Any]]) -> List[Tweak]:
    """Build tweaks from YAML text or an already-parsed mapping"""
    if isinstance(data, str):
        try:
            data = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise CatalogError(f"Invalid YAML in tweak catalog: {e}") from e

    if not isinstance(data, dict) or data.get("schema") != SUPPORTED_SCHEMA:
        raise CatalogError("Unsupported tweak catalog schema")

    entries = data.get("tweaks")
    if not isinstance(entries, list):
        raise CatalogError("catalog.tweaks must be a list")

    tweaks: List[Tweak] = []
    seen = set()
    for raw in entries:
        tweak = build_tweak(raw)
        if tweak.id in seen:
            raise CatalogError(f"duplicate tweak id: {tweak.id!r}")
        seen.add(tweak.id)
        tweaks.append(tweak)

    return tweaks


def load_catalog_file(path: Optional[Path] = None) -> List[Tweak]:
    path = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise CatalogError(f"Could not read tweak catalog {path}: {e}") from e
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML in tweak catalog {path}: {e}") from e

    tweaks = load_catalog(data)
    logging.info(f"Loaded {len(tweaks)} tweaks from {path}")
    return tweaks


def load_default_registry(path: Optional[Path] = None) -> TweakRegistry:
    """Registry populated from the bundled (or given) catalog file"""
    return TweakRegistry(load_catalog_file(path))

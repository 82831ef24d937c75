"""Presets - named bundles of tweak ids, risk labels, import/export envelopes

Presets hold ids, not tweak objects. Ids are resolved against the registry
when the preset is applied, so a preset may name tweaks this machine's
catalog does not have (reported as missing, never an error).

Persisted shapes:
    preset file:  {"name", "description", "tweaks": [...], "created"}
    export:       {"description", "exportDate", "tweakCount", "appliedTweakIds": [...]}
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .errors import ImportFormatError
from .tweaks.base import SAFETY_LEVELS, Tweak

RISK_EXTREME = "Extreme Risk"
RISK_HIGH = "High Risk"
RISK_MODERATE = "Moderate Risk"
RISK_SAFE = "Safe"


@dataclass
class Preset:
    name: str
    description: str = ""
    tweaks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "tweaks": list(self.tweaks)}


@dataclass
class RiskAssessment:
    """Advisory label shown before a preset is applied"""
    level: str
    counts: Dict[str, int]

    @property
    def is_safe(self) -> bool:
        return self.level == RISK_SAFE


BUILT_IN_PRESETS: Dict[str, Preset] = {
    "privacy": Preset(
        name="Privacy Essentials",
        description="Turns off telemetry, activity tracking and advertising features.",
        tweaks=[
            "disable-telemetry",
            "disable-activity-history",
            "disable-advertising-id",
            "disable-location-tracking",
            "disable-customer-experience-program",
            "disable-feedback-notifications",
            "disable-error-reporting",
            "disable-copilot",
            "disable-recall",
        ],
    ),
    "performance": Preset(
        name="Performance",
        description="Shortens boot and removes background work most desktops do not need.",
        tweaks=[
            "disable-startup-delay",
            "disable-fast-startup",
            "disable-gamedvr",
            "disable-sysmain",
            "disable-transparency-effects",
            "disable-animations",
            "disable-background-apps",
        ],
    ),
    "clean-desktop": Preset(
        name="Clean Desktop",
        description="Declutters the taskbar and File Explorer.",
        tweaks=[
            "show-file-extensions",
            "taskbar-widgets-disable",
            "disable-taskbar-chat",
            "disable-taskbar-task-view",
            "taskbar-search-disable",
            "disable-news-and-interests",
            "classic-context-menu",
        ],
    ),
    "unused-services": Preset(
        name="Unused Services",
        description="Disables services for hardware and features rarely present on a home PC.",
        tweaks=[
            "disable-fax-service",
            "disable-telephony-service",
            "disable-smart-card-service",
            "disable-sensor-services",
            "disable-alljoyn-router",
            "disable-remote-registry",
            "disable-windows-media-player-sharing",
        ],
    ),
}


def validate_preset_uniqueness(presets: Optional[Dict[str, Preset]] = None) -> Dict[str, List[str]]:
    """Report tweak ids shared by more than one preset

    Only logs a warning per duplicate; presets are still usable.
    Returns {tweak_id: [preset keys]} for the duplicates.
    """
    presets = BUILT_IN_PRESETS if presets is None else presets
    owners: Dict[str, List[str]] = {}
    for key, preset in presets.items():
        for tweak_id in preset.tweaks:
            owners.setdefault(tweak_id, []).append(key)

    duplicates = {tweak_id: keys for tweak_id, keys in owners.items() if len(keys) > 1}
    for tweak_id, keys in duplicates.items():
        logging.warning(f"Tweak '{tweak_id}' appears in several presets: {', '.join(keys)}")
    return duplicates


def assess_risk(tweaks: Iterable[Tweak]) -> RiskAssessment:
    counts = Counter(t.safety for t in tweaks)
    summary = {level: counts.get(level, 0) for level in SAFETY_LEVELS}

    if summary["danger"] > 0:
        level = RISK_EXTREME
    elif summary["caution"] > 2:
        level = RISK_HIGH
    elif summary["caution"] > 0:
        level = RISK_MODERATE
    else:
        level = RISK_SAFE
    return RiskAssessment(level=level, counts=summary)


def _id_list(value: Any, source: str) -> List[str]:
    if not isinstance(value, list):
        raise ImportFormatError(f"{source} must be a list of tweak ids")
    if not all(isinstance(item, str) for item in value):
        raise ImportFormatError(f"{source} must contain only strings")
    return list(value)


def parse_import_payload(data: Any) -> List[str]:
    """Extract the tweak id list from any accepted import shape

    Accepts a plain list, a preset file ({"tweaks": [...]}) or an export
    ({"appliedTweakIds": [...]}). Anything else raises ImportFormatError.
    """
    if isinstance(data, list):
        return _id_list(data, "Import")

    if isinstance(data, dict):
        if "tweaks" in data:
            return _id_list(data["tweaks"], "'tweaks'")
        if "appliedTweakIds" in data:
            return _id_list(data["appliedTweakIds"], "'appliedTweakIds'")

    raise ImportFormatError(
        "Invalid file format. Expected a list of tweak ids, a preset file or an applied-tweaks export."
    )


def build_export(tweak_ids: List[str], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now()
    return {
        "description": "Exported applied tweaks",
        "exportDate": now.isoformat(),
        "tweakCount": len(tweak_ids),
        "appliedTweakIds": list(tweak_ids),
    }


def build_preset_file(name: str, description: str, tweak_ids: List[str],
                      now: Optional[datetime] = None) -> Dict[str, Any]:
    data = Preset(name=name, description=description, tweaks=list(tweak_ids)).to_dict()
    data["created"] = (now or datetime.now()).isoformat()
    return data

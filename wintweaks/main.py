#!/usr/bin/env python3
"""WinTweaks - command line front end

    wintweaks list [--category C] [--search TEXT]
    wintweaks status [--category C] [--search TEXT] [--json]
    wintweaks apply ID [ID ...]
    wintweaks revert ID [ID ...]
    wintweaks presets
    wintweaks preset KEY [--yes]
    wintweaks export FILE [--preset-name NAME]
    wintweaks import FILE

--dry-run swaps the PowerShell executor for one that only logs queries and
leaves the settings file untouched.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .config.engine_config import EngineConfig, load_engine_config
from .config.settings_store import SettingsStore
from .core.engine import PresetResult, TweakEngine
from .errors import WinTweaksError
from .execution.executor import CommandExecutor, PowerShellExecutor, RecordingExecutor
from .presets import BUILT_IN_PRESETS, Preset, RiskAssessment, validate_preset_uniqueness
from .tweaks.catalog import load_default_registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wintweaks", description="Check, apply and revert Windows tweaks")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Engine config YAML (default: bundled engine.yaml)")
    parser.add_argument("--catalog", help="Tweak catalog YAML (default: bundled catalog)")
    parser.add_argument("--settings", help="Settings JSON file (overrides settings_path)")
    parser.add_argument("--dry-run", action="store_true", help="Log queries instead of running them")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("list", "List tweaks without checking them"),
                            ("status", "Check the current state of tweaks")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--category", help="Only this category")
        cmd.add_argument("--search", help="Match title or description")
        cmd.add_argument("--json", action="store_true", help="Print JSON")

    apply_cmd = sub.add_parser("apply", help="Apply tweaks")
    apply_cmd.add_argument("ids", nargs="+", metavar="ID")
    revert_cmd = sub.add_parser("revert", help="Revert tweaks")
    revert_cmd.add_argument("ids", nargs="+", metavar="ID")

    sub.add_parser("presets", help="List built-in presets with their risk level")
    preset_cmd = sub.add_parser("preset", help="Apply a built-in preset")
    preset_cmd.add_argument("key", choices=sorted(BUILT_IN_PRESETS))
    preset_cmd.add_argument("-y", "--yes", action="store_true", help="Apply without asking, whatever the risk")

    export_cmd = sub.add_parser("export", help="Export applied tweaks to a JSON file")
    export_cmd.add_argument("file")
    export_cmd.add_argument("--preset-name", help="Write a preset file with this name instead")
    export_cmd.add_argument("--description", default="", help="Preset description")

    import_cmd = sub.add_parser("import", help="Apply tweaks listed in a JSON file")
    import_cmd.add_argument("file")

    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_engine(args: argparse.Namespace, config: EngineConfig) -> TweakEngine:
    registry = load_default_registry(args.catalog)
    if args.dry_run:
        executor: CommandExecutor = RecordingExecutor()
    else:
        executor = PowerShellExecutor(timeout=config.command_timeout_seconds)
    # Dry runs leave the applied-tweak history and lastPreset alone
    settings = None if args.dry_run else SettingsStore(args.settings or config.settings_path)
    return TweakEngine(registry, executor, settings=settings, config=config)


def print_result(result: PresetResult) -> None:
    print(result.summary())
    for tweak_id in result.failed:
        print(f"  failed:  {tweak_id}")
    for tweak_id in result.missing:
        print(f"  missing: {tweak_id}")


def cmd_list(engine: TweakEngine, args) -> int:
    tweaks = engine.registry.select(args.category, args.search)
    if args.json:
        print(json.dumps([t.to_dict() for t in tweaks], indent=2))
        return 0
    for category, count in engine.category_counts().items():
        if args.category and category != args.category:
            continue
        print(f"{category} ({count})")
        for tweak in tweaks:
            if tweak.category == category:
                print(f"  {tweak.id:<45} [{tweak.safety}] {tweak.title}")
    return 0


def cmd_status(engine: TweakEngine, args) -> int:
    report = engine.render(category=args.category, search=args.search)
    if args.json:
        print(json.dumps({"cards": [c.to_dict() for c in engine.board.all()],
                          "report": report.to_dict()}, indent=2))
    else:
        for card in engine.board.all():
            print(f"  [{'x' if card.checked else ' '}] {card.tweak_id:<45} {card.status_text}")
        print(f"{len(report.active)} active, {len(report.inactive)} inactive, {len(report.errors)} errors")
    return 1 if report.errors else 0


def cmd_toggle(engine: TweakEngine, ids: List[str], desired: bool) -> int:
    failures = 0
    for tweak_id in ids:
        ok = engine.toggle_tweak(tweak_id, desired)
        print(f"{'OK' if ok else 'FAILED'}: {tweak_id}")
        failures += 0 if ok else 1
    return 1 if failures else 0


def cmd_presets(engine: TweakEngine, args) -> int:
    validate_preset_uniqueness()
    for key, preset in BUILT_IN_PRESETS.items():
        risk = engine.preset_risk(preset)
        print(f"{key:<18} {preset.name} ({len(preset.tweaks)} tweaks, {risk.level})")
        print(f"{'':<18} {preset.description}")
    return 0


def confirm_preset(preset: Preset, risk: RiskAssessment, settings: Optional[SettingsStore],
                   assume_yes: bool = False) -> bool:
    """Ask before applying a preset that is not rated Safe

    Skipped with --yes or when the confirmRiskyPresets setting is off.
    No answer (closed stdin) counts as no.
    """
    if risk.is_safe or assume_yes:
        return True
    if settings is not None and not settings.get("confirmRiskyPresets", True):
        return True

    try:
        answer = input(f"Apply {len(preset.tweaks)} tweaks from {preset.name} ({risk.level})? [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_preset(engine: TweakEngine, args) -> int:
    preset = BUILT_IN_PRESETS[args.key]
    risk = engine.preset_risk(preset)
    print(f"{preset.name}: {risk.level}")
    if not confirm_preset(preset, risk, engine.settings, args.yes):
        print("Cancelled")
        return 1
    engine.render()
    result = engine.apply_preset(preset)
    if engine.settings is not None:
        engine.settings.set("lastPreset", args.key)
    print_result(result)
    return 1 if result.failed else 0


def cmd_export(engine: TweakEngine, args) -> int:
    engine.render()
    if args.preset_name:
        data = engine.export_preset_file(args.preset_name, args.description)
        count = len(data["tweaks"])
    else:
        data = engine.export_applied()
        count = data["tweakCount"]
    engine.save_json(args.file, data)
    print(f"Exported {count} tweaks to {args.file}")
    return 0


def cmd_import(engine: TweakEngine, args) -> int:
    data = engine.load_json(args.file)
    engine.render()
    result = engine.import_applied(data)
    print_result(result)
    return 1 if result.failed else 0


COMMANDS = {
    "list": cmd_list,
    "status": cmd_status,
    "apply": lambda engine, args: cmd_toggle(engine, args.ids, True),
    "revert": lambda engine, args: cmd_toggle(engine, args.ids, False),
    "presets": cmd_presets,
    "preset": cmd_preset,
    "export": cmd_export,
    "import": cmd_import,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "INFO")

    try:
        config = load_engine_config(args.config)
    except WinTweaksError as e:
        logging.error(str(e))
        return 2
    if not args.verbose:
        logging.getLogger().setLevel(config.log_level)

    try:
        engine = build_engine(args, config)
    except WinTweaksError as e:
        logging.error(str(e))
        return 2

    try:
        return COMMANDS[args.command](engine, args)
    except (WinTweaksError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        engine.close()


if __name__ == "__main__":
    sys.exit(main())

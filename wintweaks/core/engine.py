"""Tweak Engine - status resolution, toggling, presets, import/export

# =============================================================================
# ORCHESTRATION ONLY
# The engine never formats OS commands. Tweaks build their own queries and
# the BatchChecker builds the bulk query; everything runs through the one
# CommandExecutor handed to the engine.
# =============================================================================

Status resolution pass:
    1. cached statuses (while the cache is fresh)
    2. batchable tweaks -> one BatchChecker call
       (on failure they fall through to the individual path)
    3. individual checks in groups of check_group_size, one thread per check
    4. fresh results restamp the cache; failed checks are left out

Every apply/revert, whether from a user, a preset or an import, goes through
toggle_tweak().
"""

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..batch.checker import BatchChecker
from ..config.engine_config import EngineConfig
from ..config.settings_store import SettingsStore
from ..errors import ImportFormatError
from ..execution.executor import CommandExecutor
from ..execution.rate_limiter import RateLimiter
from ..presets import Preset, RiskAssessment, assess_risk, build_export, build_preset_file, parse_import_payload
from ..tweaks.base import Tweak
from ..tweaks.registry import TweakRegistry
from .cards import CardBoard, CardState, TweakCard
from .context import SessionContext
from .status_cache import StatusCache


@dataclass
class StatusReport:
    """Outcome of one status resolution pass (lists of tweak ids)"""
    active: List[str] = field(default_factory=list)
    inactive: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    from_cache: List[str] = field(default_factory=list)
    batched: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.active) + len(self.inactive) + len(self.errors)

    def to_dict(self) -> Dict[str, List[str]]:
        return asdict(self)


@dataclass
class PresetResult:
    """Per-id outcome of applying a preset or an import"""
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (f"{len(self.applied)} applied, {len(self.skipped)} already applied, "
                f"{len(self.failed)} failed, {len(self.missing)} not available")

    def to_dict(self) -> Dict[str, List[str]]:
        return asdict(self)


class TweakEngine:
    """Drives tweak cards for one session

    Args:
        registry: All known tweaks
        executor: Where every query runs
        settings: Optional store for the applied-tweak history
        config: Engine tunables (defaults if omitted)
        context: Session state; built from config if omitted
        sleep: Delay function, replaced in tests
        clock: Monotonic clock for the cache and rate limiter
    """

    def __init__(self, registry: TweakRegistry, executor: CommandExecutor,
                 settings: Optional[SettingsStore] = None,
                 config: Optional[EngineConfig] = None,
                 context: Optional[SessionContext] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.registry = registry
        self.executor = executor
        self.settings = settings
        self.config = config or EngineConfig()
        self.context = context or SessionContext(
            cache=StatusCache(ttl_seconds=self.config.cache_ttl_seconds, clock=clock),
            limiter=RateLimiter(
                window_ms=self.config.rate_limit.window_ms,
                max_requests=self.config.rate_limit.max_requests,
                clock=clock
            ),
        )
        self.board = CardBoard()
        self._sleep = sleep
        self._toggle_lock = threading.RLock()

        logging.info(f"TweakEngine initialized with {len(registry)} tweaks")

    @property
    def cache(self) -> StatusCache:
        return self.context.cache

    @property
    def limiter(self) -> RateLimiter:
        return self.context.limiter

    # ------------------------------------------------------------------
    # Rendering and status resolution
    # ------------------------------------------------------------------

    def render(self, tweaks: Optional[Iterable[Tweak]] = None, category: Optional[str] = None,
               search: Optional[str] = None) -> StatusReport:
        """Build cards for the selected tweaks and resolve their statuses"""
        if tweaks is None:
            selected = self.registry.select(category, search)
        else:
            selected = [t for t in tweaks
                        if (not category or t.category == category) and (not search or t.matches(search))]

        self.board.build(selected)
        logging.info(f"Rendered {len(selected)} tweak cards")
        return self.resolve_statuses(selected)

    def refresh(self) -> StatusReport:
        """Drop cached statuses and re-check every rendered card"""
        self.cache.clear()
        return self.resolve_statuses()

    def resolve_statuses(self, tweaks: Optional[Iterable[Tweak]] = None) -> StatusReport:
        """Resolve current state for `tweaks` (default: every rendered card)"""
        if tweaks is None:
            tweaks = self._rendered_tweaks()
        tweaks = list(tweaks)
        report = StatusReport()

        pending: List[Tweak] = []
        cache_fresh = self.cache.is_fresh()
        for tweak in tweaks:
            cached = self.cache.get(tweak.id) if cache_fresh else None
            if cached is None:
                pending.append(tweak)
                continue
            report.from_cache.append(tweak.id)
            self._record_status(report, tweak.id, cached)

        batchable = [t for t in pending if t.batch_check is not None]
        individual = [t for t in pending if t.batch_check is None]
        fresh: Dict[str, bool] = {}

        if batchable:
            batch_results = self._run_batch(batchable)
            if batch_results is None:
                individual = batchable + individual
            else:
                for tweak_id, active in batch_results.items():
                    report.batched.append(tweak_id)
                    fresh[tweak_id] = active
                    self._record_status(report, tweak_id, active)

        if individual:
            fresh.update(self._run_individual(individual, report))

        if fresh:
            self.cache.update(fresh)

        logging.info(
            f"Status pass: {len(report.active)} active, {len(report.inactive)} inactive, "
            f"{len(report.errors)} errors ({len(report.from_cache)} cached, {len(report.batched)} batched)"
        )
        return report

    def _rendered_tweaks(self) -> List[Tweak]:
        tweaks = []
        for card in self.board.all():
            tweak = self.registry.get(card.tweak_id)
            if tweak is not None:
                tweaks.append(tweak)
        return tweaks

    def _record_status(self, report: StatusReport, tweak_id: str, active: bool) -> None:
        (report.active if active else report.inactive).append(tweak_id)
        self.board.update(tweak_id, lambda card: card.show_status(active))

    def _run_batch(self, tweaks: List[Tweak]) -> Optional[Dict[str, bool]]:
        """One bulk query for all batchable tweaks; None means fall back"""
        checker = BatchChecker(self.executor)
        for tweak in tweaks:
            check = tweak.batch_check
            checker.add_registry_check(tweak.id, check.target, check.field, check.expected_value)

        try:
            results = checker.execute_registry_checks()
        except Exception as e:
            logging.warning(f"Batch check raised, falling back to individual checks: {e}")
            return None

        if checker.failed:
            logging.warning(f"Batch check failed, falling back to individual checks: {checker.last_error}")
            return None

        return {tweak.id: results[tweak.id].matches for tweak in tweaks}

    def _run_individual(self, tweaks: List[Tweak], report: StatusReport) -> Dict[str, bool]:
        """check_state() in bounded groups; a group finishes before the next starts"""
        group_size = max(1, self.config.check_group_size)
        delay = self.config.check_group_delay_ms / 1000.0
        fresh: Dict[str, bool] = {}

        for start in range(0, len(tweaks), group_size):
            group = tweaks[start:start + group_size]
            if start > 0 and delay > 0:
                self._sleep(delay)

            with ThreadPoolExecutor(max_workers=len(group)) as pool:
                futures = [(tweak, pool.submit(tweak.check_state, self.executor)) for tweak in group]
                for tweak, future in futures:
                    try:
                        active = bool(future.result())
                    except Exception as e:
                        logging.error(f"Status check failed for {tweak.id}: {e}")
                        report.errors.append(tweak.id)
                        self.board.update(tweak.id, lambda card: card.show_error())
                        continue
                    fresh[tweak.id] = active
                    self._record_status(report, tweak.id, active)

        return fresh

    # ------------------------------------------------------------------
    # Toggling
    # ------------------------------------------------------------------

    def toggle_tweak(self, tweak_id: str, desired: bool) -> bool:
        """Apply (desired=True) or revert (desired=False) one tweak

        On failure the card's checkbox goes back to its previous value, the
        status reads "Error" and the control is re-enabled.

        Returns:
            True if the tweak was applied/reverted

        Raises:
            TweakNotFoundError: If no tweak has this id
        """
        tweak = self.registry.require(tweak_id)

        with self._toggle_lock:
            card = self.board.get(tweak_id)
            if card is not None and card.state == CardState.APPLYING:
                logging.warning(f"Tweak {tweak_id} is already being applied")
                return False
            previous = card.checked if card is not None else not desired

            if not self.limiter.check_rate_limit(f"toggle:{tweak_id}"):
                logging.warning(f"Rate limit exceeded for {tweak_id}, try again later")
                self._fail_toggle(tweak_id, desired, previous, "rate limit exceeded")
                return False

            self.board.update(tweak_id, lambda c: self._begin_applying(c, desired))

        action = "Applying" if desired else "Reverting"
        logging.info(f"{action} tweak: {tweak_id}")
        try:
            if desired:
                tweak.apply_state(self.executor)
            else:
                tweak.revert_state(self.executor)
        except Exception as e:
            logging.error(f"Error toggling {tweak_id}: {e}")
            self._fail_toggle(tweak_id, desired, previous, str(e))
            return False

        self.board.update(tweak_id, lambda c: c.show_status(desired))
        self.cache.set(tweak_id, desired)
        self.context.record_toggle(tweak_id, desired, success=True)
        if self.settings is not None:
            self.settings.record_applied(tweak_id, desired, datetime.now().isoformat())
        return True

    @staticmethod
    def _begin_applying(card: TweakCard, desired: bool) -> None:
        card.state = CardState.APPLYING
        card.checked = desired
        card.enabled = False

    def _fail_toggle(self, tweak_id: str, desired: bool, previous: bool, error: str) -> None:
        self.board.update(tweak_id, lambda c: c.show_error(previous))
        self.context.record_toggle(tweak_id, desired, success=False, error=error)

    # ------------------------------------------------------------------
    # Presets, import, export
    # ------------------------------------------------------------------

    def apply_preset(self, preset: Preset) -> PresetResult:
        """Apply every tweak of a preset in order; no rollback on failure"""
        logging.info(f"Applying preset: {preset.name}")
        result = self._apply_ids(preset.tweaks)
        logging.info(f"Preset '{preset.name}': {result.summary()}")
        return result

    def preset_risk(self, preset: Preset) -> RiskAssessment:
        tweaks = [self.registry.get(tweak_id) for tweak_id in preset.tweaks]
        return assess_risk(t for t in tweaks if t is not None)

    def import_applied(self, data: Any) -> PresetResult:
        """Apply the ids from an imported file

        Raises:
            ImportFormatError: If the shape is not recognised (nothing applied)
        """
        tweak_ids = parse_import_payload(data)
        logging.info(f"Importing {len(tweak_ids)} tweaks")
        result = self._apply_ids(tweak_ids)
        logging.info(f"Import: {result.summary()}")
        return result

    def _apply_ids(self, tweak_ids: List[str]) -> PresetResult:
        result = PresetResult()
        delay = self.config.preset_item_delay_ms / 1000.0
        toggled_any = False

        for tweak_id in tweak_ids:
            card = self.board.get(tweak_id)
            if card is None or not self.registry.has(tweak_id):
                result.missing.append(tweak_id)
                continue
            if card.checked:
                result.skipped.append(tweak_id)
                continue

            if toggled_any and delay > 0:
                self._sleep(delay)
            toggled_any = True

            if self.toggle_tweak(tweak_id, True):
                result.applied.append(tweak_id)
            else:
                result.failed.append(tweak_id)

        return result

    def export_applied(self) -> Dict[str, Any]:
        """Snapshot of every checked card as an appliedTweakIds envelope"""
        tweak_ids = [tweak_id for tweak_id in self.board.checked_ids() if self.registry.has(tweak_id)]
        return build_export(tweak_ids)

    def export_preset_file(self, name: str, description: str = "",
                           tweak_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """Preset envelope for the given ids (default: checked cards)"""
        if tweak_ids is None:
            tweak_ids = self.export_applied()["appliedTweakIds"]
        return build_preset_file(name, description, tweak_ids)

    @staticmethod
    def save_json(path: Union[str, Path], data: Any) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        logging.info(f"Saved {path}")

    @staticmethod
    def load_json(path: Union[str, Path]) -> Any:
        """Read a JSON file; invalid JSON raises ImportFormatError"""
        with open(path, 'r', encoding='utf-8') as f:
            try:
                return json.load(f)
            except ValueError as e:
                raise ImportFormatError(f"{path} is not valid JSON: {e}") from e

    # ------------------------------------------------------------------
    # Categories and lifecycle
    # ------------------------------------------------------------------

    def categories(self) -> List[str]:
        return self.registry.categories()

    def category_counts(self) -> Dict[str, int]:
        counts = {category: 0 for category in self.registry.categories()}
        for tweak in self.registry:
            counts[tweak.category] += 1
        return counts

    def close(self) -> None:
        """End the session: forget cards, cached statuses and limiter windows"""
        self.context.close()
        self.board.clear()
        logging.info("TweakEngine session closed")

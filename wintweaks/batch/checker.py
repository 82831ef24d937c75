"""Batch Checker - folds many registry/service checks into one executor call

INVARIANTS:
1. An empty pending list never reaches the executor
2. Every requested key appears exactly once in the returned map,
   even when the executor fails
3. Executor failures are logged once and never propagated

Wire protocol (built and parsed here, opaque to the executor):
    one line per check:  key:STATUS:payload
    STATUS == SUCCESS    -> found
    matches              -> found and expected_value is a substring of payload
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Union

from ..execution import commands
from ..execution.executor import CommandExecutor


@dataclass
class RegistryCheck:
    key: str
    target: str
    field: str
    expected_value: str


@dataclass(frozen=True)
class RegistryCheckResult:
    found: bool
    matches: bool
    output: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ServiceCheckResult:
    name: str
    status: str
    start_type: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


NOT_FOUND = RegistryCheckResult(found=False, matches=False, output=None)


def _service_error(name: str) -> ServiceCheckResult:
    return ServiceCheckResult(name=name, status="Error", start_type="Error")


def parse_batch_lines(output: str) -> Dict[str, tuple]:
    """Split executor output into {key: (status, payload)}

    Lines without two colons are ignored. Later lines overwrite earlier
    ones for the same key.
    """
    parsed: Dict[str, tuple] = {}
    for raw_line in (output or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        parts = line.split(":", 2)
        if len(parts) < 3:
            continue
        key, status, payload = parts
        parsed[key] = (status.strip(), payload.strip())
    return parsed


class BatchChecker:
    """Accumulates checks, then executes them in one fan-out call"""

    def __init__(self, executor: CommandExecutor):
        self.executor = executor
        self.registry_checks: List[RegistryCheck] = []
        self.service_checks: List[str] = []
        self.results: Dict[str, Union[RegistryCheckResult, ServiceCheckResult]] = {}
        self.last_error: Optional[Exception] = None

    def add_registry_check(self, key: str, target: str, field: str, expected_value: str) -> None:
        """Queue a registry check. No deduplication: reused keys overwrite by key."""
        self.registry_checks.append(RegistryCheck(key, target, field, expected_value))

    def add_service_check(self, service_name: str) -> None:
        self.service_checks.append(service_name)

    def execute_registry_checks(self) -> Dict[str, RegistryCheckResult]:
        """Run all queued registry checks in a single executor call"""
        if not self.registry_checks:
            return {}

        self.last_error = None
        script = commands.build_registry_batch_script(
            [(c.key, c.target, c.field) for c in self.registry_checks]
        )

        try:
            output = self.executor.execute(script, check=False)
            parsed = parse_batch_lines(output)
        except Exception as e:
            logging.error(f"Batch registry check failed ({len(self.registry_checks)} checks): {e}")
            self.last_error = e
            parsed = {}

        results: Dict[str, RegistryCheckResult] = {}
        for check in self.registry_checks:
            entry = parsed.get(check.key)
            if entry is None:
                result = NOT_FOUND
            else:
                status, payload = entry
                found = status == commands.BATCH_FOUND
                result = RegistryCheckResult(
                    found=found,
                    matches=found and check.expected_value in payload,
                    output=payload if found else None
                )
            results[check.key] = result
            self.results[check.key] = result

        logging.debug(f"Batch registry check resolved {len(results)} keys")
        return results

    def execute_service_checks(self) -> Dict[str, ServiceCheckResult]:
        """Run all queued service checks in a single executor call"""
        if not self.service_checks:
            return {}

        script = commands.build_service_batch_script(self.service_checks)

        try:
            output = self.executor.execute(script, check=False)
            parsed = parse_batch_lines(output)
        except Exception as e:
            logging.error(f"Batch service check failed ({len(self.service_checks)} services): {e}")
            self.last_error = e
            parsed = {}

        results: Dict[str, ServiceCheckResult] = {}
        for name in self.service_checks:
            entry = parsed.get(name)
            if entry is None:
                result = _service_error(name)
            elif entry[0] != commands.BATCH_FOUND:
                result = ServiceCheckResult(name=name, status="NotFound", start_type="NotFound")
            else:
                status, _, start_type = entry[1].partition("|")
                result = ServiceCheckResult(name=name, status=status.strip(), start_type=start_type.strip())
            results[name] = result
            self.results[f"service_{name}"] = result

        return results

    def execute_all_checks(self) -> Dict[str, Dict[str, Any]]:
        return {
            "registry": self.execute_registry_checks(),
            "services": self.execute_service_checks(),
        }

    @property
    def failed(self) -> bool:
        """True if the most recent execution hit an executor failure"""
        return self.last_error is not None

    def get_result(self, key: str):
        return self.results.get(key)

    def is_registry_check_matched(self, key: str) -> bool:
        result = self.results.get(key)
        if not isinstance(result, RegistryCheckResult):
            return False
        return result.matches

    def is_service_in_state(self, service_name: str, expected: str) -> bool:
        result = self.results.get(f"service_{service_name}")
        if not isinstance(result, ServiceCheckResult):
            return False
        return expected in (result.start_type, result.status)

    def clear(self) -> None:
        self.registry_checks = []
        self.service_checks = []
        self.results.clear()
        self.last_error = None

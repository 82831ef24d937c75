"""Command Executor - runs textual queries against the operating system

# =============================================================================
# SINGLE EXECUTION AUTHORITY
# Every registry/service query and mutation flows through an executor.
# Engine code never spawns processes itself.
# =============================================================================

The executor knows nothing about tweaks. It receives a finished query string
(built by execution.commands or by a tweak strategy) and returns raw stdout.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from ..errors import CommandExecutionError


class CommandExecutor(ABC):
    """Host capability: run one query, return its text output.

    Implementations raise CommandExecutionError on failure. Single-shot,
    no streaming.
    """

    @abstractmethod
    def execute(self, query: str, check: bool = True) -> str:
        """Run a query and return raw stdout

        Args:
            query: Textual query (PowerShell syntax for the default executor)
            check: If True, a non-zero exit status raises. State checks pass
                False because "value not present" is a normal negative answer.

        Returns:
            Raw text output

        Raises:
            CommandExecutionError: If the process could not run, timed out,
                or (with check=True) exited non-zero
        """
        raise NotImplementedError


class PowerShellExecutor(CommandExecutor):
    """Runs queries through powershell.exe via subprocess"""

    def __init__(self, timeout: float = 30.0, shell_path: str = "powershell"):
        self.timeout = timeout
        self.shell_path = shell_path
        logging.info(f"PowerShellExecutor initialized (timeout={timeout}s)")

    def _build_argv(self, query: str) -> List[str]:
        return [self.shell_path, "-NoProfile", "-NonInteractive", "-Command", query]

    def execute(self, query: str, check: bool = True) -> str:
        logging.debug(f"Executing query: {query[:120]}")
        try:
            result = subprocess.run(
                self._build_argv(query),
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise CommandExecutionError(f"Query timed out after {self.timeout}s")
        except OSError as e:
            raise CommandExecutionError(f"Failed to start {self.shell_path}: {e}")

        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise CommandExecutionError(
                f"Query exited with status {result.returncode}: {stderr or 'no error output'}",
                returncode=result.returncode,
                stderr=stderr
            )

        return result.stdout or ""


class RecordingExecutor(CommandExecutor):
    """Dry-run executor: logs and records queries, never touches the system.

    Used by the CLI's --dry-run flag. `responses` maps a substring of a query
    to the output returned for it; unmatched queries return "".
    """

    def __init__(self, responses: Optional[dict] = None):
        self.responses = dict(responses or {})
        self.queries: List[str] = []

    def execute(self, query: str, check: bool = True) -> str:
        self.queries.append(query)
        logging.info(f"[dry-run] {query.splitlines()[0] if query else ''}")
        for needle, output in self.responses.items():
            if needle in query:
                return output
        return ""

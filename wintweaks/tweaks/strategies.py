"""Tweak strategies

Most tweaks are "set field to value A vs value B" and collapse into
RegistryTweak. Service start-type changes use ServiceTweak. Anything else
(one-shot cleanups, package removal) is a CommandTweak carrying opaque
command text from the catalog.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from ..execution import commands
from ..execution.executor import CommandExecutor
from .base import BatchCheck, Tweak

RegValue = Union[int, str]


@dataclass(frozen=True)
class RegistryValue:
    """One registry setting a tweak owns

    off_value None means the value is deleted on revert.
    """
    target: str
    field: str
    on_value: RegValue
    off_value: Optional[RegValue] = None
    value_type: str = "REG_DWORD"

    @property
    def expected_line(self) -> str:
        return commands.expected_reg_line(self.field, self.value_type, self.on_value)

    def apply_command(self) -> str:
        return commands.reg_add(self.target, self.field, self.value_type, self.on_value)

    def revert_command(self) -> str:
        if self.off_value is None:
            return commands.reg_delete(self.target, self.field)
        return commands.reg_add(self.target, self.field, self.value_type, self.off_value)


class RegistryTweak(Tweak):
    """Sets one or more registry values; the first one decides the state"""

    def __init__(self, id: str, title: str, settings: Sequence[RegistryValue],
                 batchable: bool = True, **meta):
        super().__init__(id, title, **meta)
        if not settings:
            raise ValueError(f"Tweak '{id}': registry tweak needs at least one setting")
        self.settings: Tuple[RegistryValue, ...] = tuple(settings)
        self.batchable = batchable

    @property
    def kind(self) -> str:
        return "registry"

    @property
    def primary(self) -> RegistryValue:
        return self.settings[0]

    @property
    def batch_check(self) -> Optional[BatchCheck]:
        if not self.batchable:
            return None
        return BatchCheck(
            target=self.primary.target,
            field=self.primary.field,
            expected_value=self.primary.expected_line
        )

    def check_state(self, executor: CommandExecutor) -> bool:
        output = executor.execute(commands.reg_query(self.primary.target, self.primary.field), check=False)
        return self.primary.expected_line in output

    def apply_state(self, executor: CommandExecutor) -> None:
        executor.execute(commands.join_commands(
            (s.apply_command() for s in self.settings), stop_on_error=True
        ))

    def revert_state(self, executor: CommandExecutor) -> None:
        executor.execute(commands.join_commands(
            (s.revert_command() for s in self.settings), stop_on_error=True
        ))


class ServiceTweak(Tweak):
    """Disables Windows services; revert restores each one's start type

    Active when every listed service reports a Disabled start type. With
    allow_missing, a service that does not exist on this machine counts as
    disabled.
    """

    def __init__(self, id: str, title: str, services: Sequence[Tuple[str, str]],
                 stop_on_apply: bool = False, allow_missing: bool = False, **meta):
        super().__init__(id, title, **meta)
        if not services:
            raise ValueError(f"Tweak '{id}': service tweak needs at least one service")
        for name, start_type in services:
            if start_type not in commands.START_TYPES:
                raise ValueError(f"Tweak '{id}': unknown start type '{start_type}' for {name}")
        self.services: Tuple[Tuple[str, str], ...] = tuple(services)
        self.stop_on_apply = stop_on_apply
        self.allow_missing = allow_missing

    @property
    def kind(self) -> str:
        return "service"

    @property
    def service_names(self) -> List[str]:
        return [name for name, _ in self.services]

    def check_state(self, executor: CommandExecutor) -> bool:
        disabled = commands.POWERSHELL_START_TYPES["disabled"]
        for name in self.service_names:
            start_type = executor.execute(commands.service_start_type_query(name), check=False).strip()
            if start_type == disabled:
                continue
            if not start_type and self.allow_missing:
                continue
            return False
        return True

    def apply_state(self, executor: CommandExecutor) -> None:
        parts = []
        for name in self.service_names:
            if self.stop_on_apply:
                parts.append(commands.service_stop(name))
            parts.append(commands.service_set_start(name, "disabled"))
        executor.execute(commands.join_commands(parts, stop_on_error=True))

    def revert_state(self, executor: CommandExecutor) -> None:
        executor.execute(commands.join_commands(
            (commands.service_set_start(name, start_type) for name, start_type in self.services),
            stop_on_error=True
        ))


class CommandTweak(Tweak):
    """Opaque commands from the catalog

    Without a check_query the tweak is a one-shot action and always reports
    inactive. Without revert commands the tweak is irreversible and revert is
    a logged no-op.
    """

    def __init__(self, id: str, title: str, apply: Sequence[str],
                 revert: Optional[Sequence[str]] = None, check_query: Optional[str] = None,
                 expect: Optional[str] = None, expect_absent: Optional[str] = None, **meta):
        super().__init__(id, title, **meta)
        if not apply:
            raise ValueError(f"Tweak '{id}': command tweak needs apply commands")
        if check_query and not (expect or expect_absent):
            raise ValueError(f"Tweak '{id}': check_query needs expect or expect_absent")
        self.apply_commands: Tuple[str, ...] = tuple(apply)
        self.revert_commands: Optional[Tuple[str, ...]] = tuple(revert) if revert else None
        self.check_query = check_query
        self.expect = expect
        self.expect_absent = expect_absent

    @property
    def kind(self) -> str:
        return "command"

    @property
    def reversible(self) -> bool:
        return self.revert_commands is not None

    @property
    def one_shot(self) -> bool:
        return self.check_query is None

    def check_state(self, executor: CommandExecutor) -> bool:
        if self.one_shot:
            return False
        output = executor.execute(self.check_query, check=False)
        if self.expect:
            return self.expect in output
        return self.expect_absent not in output

    def apply_state(self, executor: CommandExecutor) -> None:
        executor.execute(commands.join_commands(self.apply_commands))

    def revert_state(self, executor: CommandExecutor) -> None:
        if not self.reversible:
            logging.info(f"Tweak '{self.id}' cannot be reverted; nothing to do")
            return
        executor.execute(commands.join_commands(self.revert_commands))

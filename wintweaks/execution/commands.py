"""OS command formatting

This is the only module that knows reg.exe / sc.exe / PowerShell syntax.
Everything above it speaks in data: (target, field, value) for registry
settings and (service, start type) for services.

Quoting uses PowerShell single-quoted strings, where the only escape is a
doubled single quote.
"""

from typing import Iterable, List, Sequence, Tuple, Union

RegValue = Union[int, str]

# reg.exe names for sc.exe start types
START_TYPES = {"auto", "demand", "disabled", "delayed-auto", "boot", "system"}

# Get-Service StartType as reported by PowerShell
POWERSHELL_START_TYPES = {
    "auto": "Automatic",
    "delayed-auto": "AutomaticDelayedStart",
    "demand": "Manual",
    "disabled": "Disabled",
    "boot": "Boot",
    "system": "System",
}

BATCH_FOUND = "SUCCESS"
BATCH_NOT_FOUND = "NOTFOUND"

EXIT_ON_ERROR = "if ($LASTEXITCODE) { exit $LASTEXITCODE }"


def ps_quote(value: str) -> str:
    """Quote a string as a PowerShell single-quoted literal"""
    return "'" + str(value).replace("'", "''") + "'"


def format_reg_value(value_type: str, value: RegValue) -> str:
    """Render a value the way `reg query` prints it"""
    if value_type in ("REG_DWORD", "REG_QWORD"):
        return hex(int(value))
    return str(value)


def expected_reg_line(field: str, value_type: str, value: RegValue) -> str:
    """The `reg query` output fragment that proves a value is set"""
    return f"{field}    {value_type}    {format_reg_value(value_type, value)}"


def reg_query(target: str, field: str) -> str:
    return f"reg query {ps_quote(target)} /v {ps_quote(field)}"


def reg_add(target: str, field: str, value_type: str, value: RegValue) -> str:
    return (
        f"reg add {ps_quote(target)} /v {ps_quote(field)} "
        f"/t {value_type} /d {ps_quote(value)} /f"
    )


def reg_delete(target: str, field: str) -> str:
    return f"reg delete {ps_quote(target)} /v {ps_quote(field)} /f"


def service_start_type_query(name: str) -> str:
    return f"(Get-Service -Name {ps_quote(name)} -ErrorAction SilentlyContinue).StartType"


def service_set_start(name: str, start_type: str) -> str:
    if start_type not in START_TYPES:
        raise ValueError(f"Unknown service start type: {start_type}")
    return f"sc.exe config {ps_quote(name)} start= {start_type}"


def service_stop(name: str) -> str:
    # Stop-Service leaves $LASTEXITCODE alone, so a service that is already
    # stopped does not fail the query
    return f"Stop-Service -Name {ps_quote(name)} -Force -ErrorAction SilentlyContinue"


def join_commands(commands: Iterable[str], stop_on_error: bool = False) -> str:
    """Join several commands into one query, run in order

    With stop_on_error, a native command (reg.exe, sc.exe) that exits non-zero
    ends the query with its exit status instead of running the rest.
    """
    parts = [cmd for cmd in commands if cmd]
    if stop_on_error:
        parts = [f"{cmd}; {EXIT_ON_ERROR}" for cmd in parts]
    return "; ".join(parts)


def build_registry_batch_script(checks: Sequence[Tuple[str, str, str]]) -> str:
    """One script that reports every (key, target, field) as `key:STATUS:payload`

    The payload is the matching `reg query` output line, trimmed.
    """
    lines: List[str] = []
    for key, target, field in checks:
        prefix_found = ps_quote(f"{key}:{BATCH_FOUND}:")
        not_found = ps_quote(f"{key}:{BATCH_NOT_FOUND}:")
        lines.append(
            f"$out = & reg query {ps_quote(target)} /v {ps_quote(field)} 2>$null; "
            f"if ($LASTEXITCODE -eq 0) {{ "
            f"$line = $out | Where-Object {{ $_.Contains({ps_quote(field)}) }} | Select-Object -First 1; "
            f"Write-Output ({prefix_found} + \"$line\".Trim()) "
            f"}} else {{ Write-Output {not_found} }}"
        )
    return "\n".join(lines)


def build_service_batch_script(names: Sequence[str]) -> str:
    """One script that reports every service as `name:STATUS:Status|StartType`"""
    lines: List[str] = []
    for name in names:
        prefix_found = ps_quote(f"{name}:{BATCH_FOUND}:")
        not_found = ps_quote(f"{name}:{BATCH_NOT_FOUND}:")
        lines.append(
            f"$svc = Get-Service -Name {ps_quote(name)} -ErrorAction SilentlyContinue; "
            f"if ($svc) {{ Write-Output ({prefix_found} + $svc.Status + '|' + $svc.StartType) }} "
            f"else {{ Write-Output {not_found} }}"
        )
    return "\n".join(lines)

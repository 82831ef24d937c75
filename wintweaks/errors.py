"""Exception hierarchy for the tweak engine

Every error raised on purpose by wintweaks derives from WinTweaksError so the
CLI can report it without catching unrelated exceptions.
"""


class WinTweaksError(Exception):
    """Base class for all wintweaks errors"""


class CommandExecutionError(WinTweaksError):
    """A query sent to the command executor failed (spawn error, timeout, non-zero exit)"""

    def __init__(self, message: str, returncode: int = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class TweakNotFoundError(WinTweaksError):
    """No tweak registered under the requested id"""


class ImportFormatError(WinTweaksError):
    """Imported JSON matches none of the accepted envelope shapes"""


class CatalogError(WinTweaksError):
    """Declarative tweak data is malformed"""


class ConfigError(WinTweaksError):
    """Engine configuration could not be loaded"""

from .cards import CardBoard, CardState, TweakCard
from .context import SessionContext
from .engine import PresetResult, StatusReport, TweakEngine
from .status_cache import StatusCache

__all__ = [
    "CardBoard", "CardState", "TweakCard",
    "SessionContext",
    "PresetResult", "StatusReport", "TweakEngine",
    "StatusCache",
]

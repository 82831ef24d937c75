"""Card state model - headless stand-in for the tweak cards of a UI

Each rendered tweak gets a TweakCard with a checkbox value, an enabled flag
and a status line. Front ends observe changes through board listeners.

State flow:
    UNKNOWN -> ACTIVE | INACTIVE -> APPLYING -> ACTIVE | INACTIVE
                                             -> ERROR (checkbox restored)
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from ..tweaks.base import Tweak


class CardState(Enum):
    UNKNOWN = "unknown"         # Rendered, status not resolved yet
    INACTIVE = "inactive"
    ACTIVE = "active"
    APPLYING = "applying"       # Toggle in progress, control disabled
    ERROR = "error"             # Last check or toggle failed


STATUS_TEXT = {
    CardState.UNKNOWN: "Loading...",
    CardState.INACTIVE: "Inactive",
    CardState.ACTIVE: "Active",
    CardState.APPLYING: "Applying...",
    CardState.ERROR: "Error",
}


@dataclass
class TweakCard:
    tweak_id: str
    title: str
    category: str
    safety: str
    state: CardState = CardState.UNKNOWN
    checked: bool = False
    enabled: bool = False

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self.state]

    def show_status(self, active: bool) -> None:
        self.state = CardState.ACTIVE if active else CardState.INACTIVE
        self.checked = active
        self.enabled = True

    def show_error(self, checked: Optional[bool] = None) -> None:
        """Error state; the control is always left usable"""
        self.state = CardState.ERROR
        if checked is not None:
            self.checked = checked
        self.enabled = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.tweak_id,
            "title": self.title,
            "category": self.category,
            "safety": self.safety,
            "state": self.state.value,
            "status": self.status_text,
            "checked": self.checked,
            "enabled": self.enabled,
        }


CardListener = Callable[[TweakCard], None]


class CardBoard:
    """The set of currently rendered cards

    Updates addressed to a card that is no longer rendered are dropped
    silently (a re-render with a filter can remove cards mid-pass).
    """

    def __init__(self):
        self._cards: Dict[str, TweakCard] = {}
        self._listeners: List[CardListener] = []
        self._lock = threading.RLock()

    def add_listener(self, listener: CardListener) -> None:
        self._listeners.append(listener)

    def build(self, tweaks: Iterable[Tweak]) -> List[TweakCard]:
        """Replace all cards with fresh UNKNOWN, disabled ones"""
        with self._lock:
            self._cards = {
                t.id: TweakCard(tweak_id=t.id, title=t.title, category=t.category, safety=t.safety)
                for t in tweaks
            }
            cards = list(self._cards.values())
        for card in cards:
            self._notify(card)
        return cards

    def get(self, tweak_id: str) -> Optional[TweakCard]:
        with self._lock:
            return self._cards.get(tweak_id)

    def update(self, tweak_id: str, change: Callable[[TweakCard], None]) -> bool:
        """Apply `change` to a card under the board lock; False if not rendered"""
        with self._lock:
            card = self._cards.get(tweak_id)
            if card is None:
                return False
            change(card)
        self._notify(card)
        return True

    def checked_ids(self) -> List[str]:
        with self._lock:
            return [card.tweak_id for card in self._cards.values() if card.checked]

    def all(self) -> List[TweakCard]:
        with self._lock:
            return list(self._cards.values())

    def clear(self) -> None:
        with self._lock:
            self._cards = {}

    def _notify(self, card: TweakCard) -> None:
        for listener in self._listeners:
            try:
                listener(card)
            except Exception as e:
                logging.error(f"Card listener failed for {card.tweak_id}: {e}")

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, tweak_id: str) -> bool:
        return tweak_id in self._cards

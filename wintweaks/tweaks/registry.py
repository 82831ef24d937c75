"""Tweak Registry - id-indexed lookup for all known tweaks

Deterministic, no I/O. Registration order is preserved and is the order
tweaks are rendered in.
"""

from typing import Dict, Iterable, List, Optional

from ..errors import TweakNotFoundError
from .base import Tweak


class TweakRegistry:
    """Central registry for tweaks"""

    def __init__(self, tweaks: Optional[Iterable[Tweak]] = None):
        self._tweaks: Dict[str, Tweak] = {}
        for tweak in tweaks or []:
            self.register(tweak)

    def register(self, tweak: Tweak) -> None:
        if not isinstance(tweak, Tweak):
            raise TypeError("Tweak must inherit from Tweak base class")

        if tweak.id in self._tweaks:
            raise ValueError(f"Tweak '{tweak.id}' is already registered")

        self._tweaks[tweak.id] = tweak

    def get(self, tweak_id: str) -> Optional[Tweak]:
        return self._tweaks.get(tweak_id)

    def require(self, tweak_id: str) -> Tweak:
        """Get a tweak or raise TweakNotFoundError"""
        tweak = self._tweaks.get(tweak_id)
        if tweak is None:
            raise TweakNotFoundError(f"Unknown tweak '{tweak_id}'")
        return tweak

    def has(self, tweak_id: str) -> bool:
        return tweak_id in self._tweaks

    def all(self) -> List[Tweak]:
        return list(self._tweaks.values())

    def ids(self) -> List[str]:
        return list(self._tweaks)

    def categories(self) -> List[str]:
        """Distinct categories in first-seen order"""
        seen: List[str] = []
        for tweak in self._tweaks.values():
            if tweak.category not in seen:
                seen.append(tweak.category)
        return seen

    def select(self, category: Optional[str] = None, search: Optional[str] = None) -> List[Tweak]:
        """Filter by exact category and/or title/description search term"""
        selected = self.all()
        if category:
            selected = [t for t in selected if t.category == category]
        if search:
            selected = [t for t in selected if t.matches(search)]
        return selected

    def __len__(self) -> int:
        return len(self._tweaks)

    def __contains__(self, tweak_id: str) -> bool:
        return tweak_id in self._tweaks

    def __iter__(self):
        return iter(self._tweaks.values())

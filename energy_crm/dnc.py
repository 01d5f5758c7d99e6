"""Do-Not-Call suppression list keyed by normalised phone number."""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional

from .normalize import normalize_phone

LOGGER = logging.getLogger(__name__)


class DncList:
    """Grow-only set of phone numbers; insertion order is kept for persistence."""

    def __init__(self, numbers: Optional[Iterable[str]] = None) -> None:
        self._numbers: dict[str, None] = {}
        for number in numbers or []:
            self.add(number)

    def add(self, phone: Optional[str]) -> bool:
        """Add ``phone`` after normalising it; return ``True`` if it was new."""

        normalised = normalize_phone(phone)
        if not normalised:
            return False
        if normalised in self._numbers:
            LOGGER.debug("Phone %s already suppressed", normalised)
            return False
        self._numbers[normalised] = None
        return True

    def contains(self, phone: Optional[str]) -> bool:
        normalised = normalize_phone(phone)
        return bool(normalised) and normalised in self._numbers

    __contains__ = contains

    def __iter__(self) -> Iterator[str]:
        return iter(self._numbers)

    def __len__(self) -> int:
        return len(self._numbers)

    def as_set(self) -> frozenset[str]:
        return frozenset(self._numbers)

    def to_list(self) -> List[str]:
        return list(self._numbers)


__all__ = ["DncList"]

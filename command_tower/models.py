"""
Data models for Command Tower.

This module contains the core data structures shared by the services and the
history cache: CommanderCard, CardImage, Visit and PriceBreakdown.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class CommanderCard:
    """A commander returned by the catalog lookup."""
    name: str
    image_uri: str
    color_identity: List[str] = field(default_factory=list)
    type_line: str = ""
    scryfall_uri: str = ""

    @property
    def is_double_faced(self) -> bool:
        return bool(self.type_line) and '//' in self.type_line


@dataclass(frozen=True)
class CardImage:
    """Resolved image of a card, ready to be handed to a renderer."""
    uri: str
    content: bytes = b""
    content_type: str = ""
    is_placeholder: bool = False

    @property
    def is_empty(self) -> bool:
        """True if no image bytes could be loaded at all."""
        return not self.content


@dataclass
class Visit:
    """
    One entry of the navigation history.

    ``name`` and ``image`` are fixed when the visit is created. ``decklist``
    and ``price`` start unset (``None``) and are filled at most once by the
    history cache.
    """
    name: str
    image: Optional[CardImage] = None
    decklist: Optional[str] = None
    price: Optional[float] = None
    is_placeholder: bool = False

    def __setattr__(self, key, value):
        if key in ('name', 'image') and key in self.__dict__:
            raise AttributeError(f"Visit.{key} is immutable once set")
        if key in ('decklist', 'price') and self.__dict__.get(key) is not None:
            raise AttributeError(f"Visit.{key} has already been filled")
        super().__setattr__(key, value)

    @property
    def has_decklist(self) -> bool:
        return self.decklist is not None

    @property
    def has_price(self) -> bool:
        return self.price is not None

    @property
    def decklist_lines(self) -> List[str]:
        """Non-blank decklist lines, in order."""
        if not self.decklist:
            return []
        return [line.strip() for line in self.decklist.splitlines() if line.strip()]


@dataclass
class PriceBreakdown:
    """Result of a chunked price aggregation."""
    total: float = 0.0
    chunk_totals: List[float] = field(default_factory=list)
    failed_chunks: int = 0

    @property
    def dispatched_chunks(self) -> int:
        return len(self.chunk_totals)

    @property
    def is_complete(self) -> bool:
        """True if every dispatched chunk was priced successfully."""
        return self.failed_chunks == 0

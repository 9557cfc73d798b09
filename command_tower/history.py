"""
Navigation history of shown commanders.

The history is an append-only list of visits plus a cursor measured in steps
behind the newest visit. Moving forward at the newest visit fetches a new
commander; moving forward anywhere else replays an existing visit. Decklists
and prices are fetched on first access and stored on the visit.

The history is not thread-safe. Callers serialize access, e.g. by handling
one user command at a time.
"""

import logging
from typing import Iterable, List, Optional

from .exceptions import CollaboratorError
from .models import CardImage, Visit
from .pricing import aggregate_price_detailed


logger = logging.getLogger(__name__)


class History:
    """Cursor-based cache of commander visits."""

    def __init__(self, catalog, decklists, prices, images, price_concurrency: int = 2):
        """
        Initialize an empty history.

        Args:
            catalog: Object providing ``find_commander(selection, query)``
            decklists: Object providing ``get_average_decklist(name)``
            prices: Object providing ``fetch_prices(names)``
            images: Object providing ``resolve(uri)`` and ``placeholder()``
            price_concurrency: Number of parallel chunks used for pricing
        """
        self.catalog = catalog
        self.decklists = decklists
        self.prices = prices
        self.images = images
        self.price_concurrency = price_concurrency

        self._entries: List[Visit] = []
        self._back_steps = 0

    @property
    def entries(self) -> List[Visit]:
        return list(self._entries)

    @property
    def count(self) -> int:
        """Index of the newest visit, -1 when empty."""
        return len(self._entries) - 1

    @property
    def back_steps(self) -> int:
        return self._back_steps

    @property
    def at_frontier(self) -> bool:
        return self._back_steps == 0

    @property
    def can_step_back(self) -> bool:
        return self.count > 0 and self._back_steps < self.count

    @property
    def position(self) -> int:
        """Index of the current visit, -1 when empty."""
        if not self._entries:
            return -1
        return self.count - self._back_steps

    def __len__(self) -> int:
        return len(self._entries)

    def current(self) -> Optional[Visit]:
        if not self._entries:
            return None
        return self._entries[self.position]

    def step_back(self) -> Optional[Visit]:
        """
        Move the cursor one visit back.

        Returns:
            The new current visit, or None if already at the oldest visit
        """
        if not self.can_step_back:
            return None

        self._back_steps += 1
        return self.current()

    def advance(self, selection: Iterable[str] = (), query: str = "") -> Visit:
        """
        Move the cursor one visit forward.

        At the newest visit this fetches a new commander and appends it;
        behind it, the already cached next visit is returned.

        Args:
            selection: Colour tokens (and the exact token) used as filter
            query: Free-form Scryfall query text

        Returns:
            The new current visit
        """
        if self._back_steps > 0:
            self._back_steps -= 1
            return self.current()

        visit = self._fetch_visit(selection, query)
        self._entries.append(visit)
        return visit

    def _fetch_visit(self, selection: Iterable[str], query: str) -> Visit:
        try:
            card = self.catalog.find_commander(selection, query)
        except CollaboratorError as e:
            logger.warning(f"Could not fetch a new commander: {e}")
            return Visit(name="", image=self.images.placeholder(), is_placeholder=True)

        colors = "".join(card.color_identity) or "colourless"
        faces = ", double-faced" if card.is_double_faced else ""
        logger.info(f"Retrieved commander: {card.name} ({colors}{faces})")
        image: CardImage = self.images.resolve(card.image_uri)
        return Visit(name=card.name, image=image)

    def lazy_decklist(self, visit: Visit) -> str:
        """
        Get the decklist of a visit, fetching it on first access.

        A failed fetch returns an empty string and leaves the visit unchanged,
        so the next call tries again.
        """
        if visit.decklist is not None:
            return visit.decklist

        if visit.is_placeholder or not visit.name:
            return ""

        try:
            decklist = self.decklists.get_average_decklist(visit.name)
        except CollaboratorError as e:
            logger.warning(f"Could not fetch decklist for {visit.name}: {e}")
            return ""

        if not decklist:
            return ""

        visit.decklist = decklist
        return decklist

    def lazy_price(self, visit: Visit) -> float:
        """
        Get the decklist price of a visit, computing it on first access.

        A total produced while some chunks failed, or without any chunk being
        dispatched, is returned but not stored.
        """
        if visit.price is not None:
            return visit.price

        decklist = self.lazy_decklist(visit)
        if not decklist:
            return 0.0

        breakdown = aggregate_price_detailed(
            visit.decklist_lines, self.price_concurrency, self.prices.fetch_prices
        )
        if breakdown.dispatched_chunks == 0:
            logger.warning(
                f"No price chunks were dispatched for {visit.name} "
                f"(concurrency {self.price_concurrency}); price left unset"
            )
            return breakdown.total

        if not breakdown.is_complete:
            logger.warning(
                f"{breakdown.failed_chunks} of {breakdown.dispatched_chunks} price chunks failed "
                f"for {visit.name}; price will be recomputed next time"
            )
            return breakdown.total

        visit.price = breakdown.total
        return visit.price

    def current_decklist(self) -> str:
        visit = self.current()
        return self.lazy_decklist(visit) if visit else ""

    def current_price(self) -> float:
        visit = self.current()
        return self.lazy_price(visit) if visit else 0.0

"""
UI action handlers for the commander browser.

Each handler takes the session History and the user's input and returns the
DisplayState the front end should show. Handlers hold no state of their own.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set

import pyperclip

from .history import History
from .models import CardImage, Visit
from .scryfall_service import COLOR_TOKENS, EXACT_TOKEN


logger = logging.getLogger(__name__)

COLOR_NAMES = {
    'white': 'W',
    'blue': 'U',
    'black': 'B',
    'red': 'R',
    'green': 'G',
}


@dataclass
class DisplayState:
    """Everything the front end needs to render the current visit."""
    name: str = ""
    image: Optional[CardImage] = None
    decklist: Optional[str] = None
    price: Optional[float] = None
    position: int = -1
    total: int = 0
    can_go_back: bool = False
    message: str = ""

    @property
    def has_commander(self) -> bool:
        return bool(self.name)


def parse_selection(colors: Optional[Iterable[str]] = None, exact: bool = False) -> Set[str]:
    """
    Turn user colour input into selection tokens.

    Accepts letters ("WU", "w u") as well as colour names ("white", "Blue").

    Raises:
        ValueError: If a colour is not recognised
    """
    selection: Set[str] = set()
    items = [part for value in colors or [] for part in re.split(r"[\s,]+", value)]
    for item in items:
        if not item:
            continue
        if item.lower() in COLOR_NAMES:
            selection.add(COLOR_NAMES[item.lower()])
            continue
        for letter in item.upper():
            if letter not in COLOR_TOKENS:
                raise ValueError(f"Unknown colour: {item}")
            selection.add(letter)

    if exact:
        selection.add(EXACT_TOKEN)
    return selection


def render_state(history: History, message: str = "") -> DisplayState:
    """Build the display state for the current visit without fetching anything."""
    visit: Optional[Visit] = history.current()
    if visit is None:
        return DisplayState(message=message)

    return DisplayState(
        name=visit.name,
        image=visit.image,
        decklist=visit.decklist,
        price=visit.price,
        position=history.position,
        total=len(history),
        can_go_back=history.can_step_back,
        message=message
    )


def show_next(history: History, selection: Iterable[str] = (), query: str = "") -> DisplayState:
    """Handle the forward/new commander action."""
    fetching = history.at_frontier
    visit = history.advance(selection, query)

    if visit.is_placeholder:
        message = "No commander found for this selection"
    elif fetching:
        message = f"New commander: {visit.name}"
    else:
        message = f"Forward to {visit.name}"
    return render_state(history, message)


def show_previous(history: History) -> DisplayState:
    """Handle the back action; at the oldest visit nothing changes."""
    visit = history.step_back()
    if visit is None:
        return render_state(history, "Already at the first commander")
    return render_state(history, f"Back to {visit.name or 'placeholder'}")


def show_decklist(history: History) -> DisplayState:
    """Load the decklist of the current visit."""
    if history.current() is None:
        return render_state(history, "No commander loaded")

    decklist = history.current_decklist()
    if not decklist:
        return render_state(history, "No decklist available")

    card_count = len(history.current().decklist_lines)
    return render_state(history, f"Decklist with {card_count} entries")


def show_price(history: History, currency: str = "eur") -> DisplayState:
    """Compute or recall the decklist price of the current visit."""
    if history.current() is None:
        return render_state(history, "No commander loaded")

    price = history.current_price()
    if not history.current().has_decklist:
        return render_state(history, "No decklist to price")

    return render_state(history, f"Deck price: {price:.2f} {currency.upper()}")


def copy_decklist(history: History) -> DisplayState:
    """Copy the current decklist to the system clipboard."""
    if history.current() is None:
        return render_state(history, "No commander loaded")

    decklist = history.current_decklist()
    if not decklist:
        return render_state(history, "No decklist available")

    try:
        pyperclip.copy(decklist)
    except pyperclip.PyperclipException as e:
        logger.warning(f"Clipboard unavailable: {e}")
        return render_state(history, "Clipboard unavailable")

    logger.info("Deck copied!")
    return render_state(history, "Decklist copied to clipboard")

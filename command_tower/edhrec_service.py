"""EDHREC service module for fetching average commander decklists."""

import re
import time
import logging
import unicodedata
from typing import Any, Dict, List, Optional

import pyedhrec

from .exceptions import DecklistNotFoundError, EDHRECAPIError


def format_edhrec_name(name: str) -> str:
    """
    Convert a card name to the slug EDHREC uses in its URLs.

    Args:
        name: Card name as printed, e.g. "Atraxa, Grand Unifier"

    Returns:
        Slug such as "atraxa-grand-unifier"
    """
    front = name.split('//')[0].strip()
    decomposed = unicodedata.normalize('NFD', front)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != 'Mn')
    slug = unicodedata.normalize('NFC', stripped).lower()
    slug = re.sub(r"[,'&.]", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    return slug


class EDHRECService:
    """Service for fetching average decklists via the pyedhrec package."""

    def __init__(self, max_retries: int = 3, base_delay: float = 1.0):
        """
        Initialize EDHREC service.

        Args:
            max_retries: Attempts per decklist before giving up
            base_delay: First retry delay in seconds, doubled on every attempt
        """
        self.logger = logging.getLogger(__name__)

        self.edhrec_client = pyedhrec.EDHRec()

        # Retry settings
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = 30.0

    @classmethod
    def from_config(cls, config) -> 'EDHRECService':
        return cls(max_retries=config.api_retry_attempts, base_delay=config.retry_base_delay)

    def get_average_decklist(self, commander: str) -> str:
        """
        Get the average decklist for a commander.

        Args:
            commander: Name of the commander card

        Returns:
            Decklist text, one ``"<quantity> <name>"`` line per card

        Raises:
            DecklistNotFoundError: If EDHREC has no average deck for the commander
            EDHRECAPIError: If the API call fails after retries
        """
        slug = format_edhrec_name(commander)
        if not slug:
            raise DecklistNotFoundError("Cannot look up a decklist without a commander name")

        self.logger.info(f"Retrieving average deck for {commander} ({slug})")
        raw_data = self._fetch_with_retry(lambda: self._fetch_average_deck(slug))

        lines = self._parse_decklist(raw_data)
        if not lines:
            raise DecklistNotFoundError(f"No decks found for commander: {commander}")

        self.logger.info(f"Retrieved {len(lines)} decklist lines for {commander}")
        return "\n".join(lines)

    def _fetch_average_deck(self, slug: str) -> Dict[str, Any]:
        self.logger.debug(f"Fetching EDHREC average deck: {slug}")
        deck_data = self.edhrec_client.get_commanders_average_deck(slug)
        if not deck_data:
            raise EDHRECAPIError(f"No data returned for commander: {slug}")
        return deck_data

    def _parse_decklist(self, raw_data: Dict[str, Any]) -> List[str]:
        """
        Extract decklist lines from a pyedhrec average deck response.

        Args:
            raw_data: Response of ``get_commanders_average_deck``

        Returns:
            Non-empty decklist lines
        """
        decklist = raw_data.get('decklist') or raw_data.get('deck') or []
        if isinstance(decklist, str):
            decklist = decklist.splitlines()

        return [str(line).strip() for line in decklist if str(line).strip()]

    def _fetch_with_retry(self, fetch_func) -> Any:
        """
        Execute a function with exponential backoff retry logic.

        Args:
            fetch_func: Function to execute with retries

        Returns:
            Result of successful function execution

        Raises:
            EDHRECAPIError: If all retries fail
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                return fetch_func()

            except Exception as e:
                last_exception = e

                if attempt < self.max_retries - 1:
                    delay = min(self.base_delay * (2 ** attempt), self.max_delay)

                    self.logger.warning(
                        f"API call failed (attempt {attempt + 1}/{self.max_retries}), "
                        f"retrying in {delay:.1f}s: {e}"
                    )

                    time.sleep(delay)
                else:
                    self.logger.error(f"All retry attempts failed: {e}")

        raise EDHRECAPIError(f"API call failed after {self.max_retries} attempts: {last_exception}")

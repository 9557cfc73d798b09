"""
Scryfall API service for commander lookup and card pricing.

This module queries Scryfall for a random commander matching a colour
selection and free-text query, and prices batches of cards through the
collection endpoint.
"""

import json
import time
import logging
import random
from typing import Dict, List, Iterable, Optional, Any
from urllib.parse import quote_plus

import requests

from .exceptions import CommanderNotFoundError, ScryfallAPIError
from .models import CommanderCard


COMMANDER_BASE_QUERY = "is:Commander (game:paper) legal:commander (type:creature OR type:planeswalker)"
COLOR_TOKENS = ('W', 'U', 'B', 'R', 'G')
EXACT_TOKEN = 'e'


def build_commander_query(selection: Iterable[str] = (), search_query: str = "") -> str:
    """
    Build the Scryfall search string for a random commander.

    Args:
        selection: Colour tokens (W, U, B, R, G) and optionally the exact token 'e'
        search_query: Additional free-form Scryfall syntax

    Returns:
        Search string for the ``q`` parameter
    """
    tokens = set(selection)
    colors = "".join(c for c in COLOR_TOKENS if c in tokens)

    query = COMMANDER_BASE_QUERY
    if search_query and search_query.strip():
        query += " " + search_query.strip()

    # Only the exact token selected means no colour restriction at all
    if not colors:
        return query

    operator = "=" if EXACT_TOKEN in tokens else "<="
    return f"{query} color{operator}{colors}"


class ScryfallService:
    """Service for interacting with the Scryfall API."""

    BASE_URL = "https://api.scryfall.com"
    COLLECTION_BATCH_LIMIT = 75  # Scryfall accepts at most 75 identifiers per request

    def __init__(self, base_url: Optional[str] = None, image_size: str = "border_crop",
                 price_currency: str = "eur", timeout: int = 15,
                 user_agent: str = "CommandTower/0.1.0"):
        """
        Initialize Scryfall service.

        Args:
            base_url: API root, defaults to the public Scryfall API
            image_size: Key of ``image_uris`` used for commander images
            price_currency: Key of ``prices`` summed for decklists (eur, usd, tix)
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
        """
        self.logger = logging.getLogger(__name__)

        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.image_size = image_size
        self.price_currency = price_currency
        self.timeout = timeout

        # Scryfall asks for 50-100ms between requests
        self.last_request_time = 0.0
        self.min_request_interval = 0.1

        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/json'
        })

    @classmethod
    def from_config(cls, config) -> 'ScryfallService':
        return cls(
            base_url=config.scryfall_base_url,
            image_size=config.image_size,
            price_currency=config.price_currency,
            timeout=config.request_timeout_seconds,
            user_agent=config.user_agent
        )

    def find_commander(self, selection: Iterable[str] = (), search_query: str = "") -> CommanderCard:
        """
        Get a random commander matching the selection.

        Args:
            selection: Colour tokens and optionally the exact token
            search_query: Additional free-form Scryfall syntax

        Returns:
            CommanderCard with name and image URI

        Raises:
            CommanderNotFoundError: If nothing matches the query
            ScryfallAPIError: On network errors or unexpected responses
        """
        query = build_commander_query(selection, search_query)
        self.logger.info(f"Retrieving commander with query: {query}")

        url = f"{self.base_url}/cards/random?q={quote_plus(query)}"
        data = self._request('GET', url)
        if data is None:
            raise CommanderNotFoundError(f"No commander matches query: {query}")

        return self.parse_commander(data)

    def parse_commander(self, data: Dict[str, Any]) -> CommanderCard:
        """
        Build a CommanderCard from a Scryfall card object.

        Double-faced cards keep only the front face name and image.
        """
        if not isinstance(data, dict):
            raise ScryfallAPIError("Malformed card response")

        name = data.get('name')
        if not name or not isinstance(name, str):
            raise ScryfallAPIError("Card response is missing a name")

        front_name = name.split(' // ')[0].strip()

        image_uris = data.get('image_uris') or {}
        if not isinstance(image_uris, dict):
            raise ScryfallAPIError("Malformed card response: image_uris is not an object")

        image_uri = image_uris.get(self.image_size, '')
        if not image_uri:
            faces = data.get('card_faces') or []
            if faces:
                if not isinstance(faces, list) or not isinstance(faces[0], dict):
                    raise ScryfallAPIError("Malformed card response: card_faces")
                face_images = faces[0].get('image_uris') or {}
                if not isinstance(face_images, dict):
                    raise ScryfallAPIError("Malformed card response: card_faces")
                image_uri = face_images.get(self.image_size) or face_images.get('normal', '')

        return CommanderCard(
            name=front_name,
            image_uri=image_uri,
            color_identity=data.get('color_identity', []),
            type_line=data.get('type_line', ''),
            scryfall_uri=data.get('scryfall_uri', '')
        )

    def fetch_prices(self, names: List[str]) -> Dict[str, float]:
        """
        Look up prices for a batch of cards.

        Args:
            names: Card names to price

        Returns:
            Mapping of returned card name to price; cards without a price map to 0.0.
            A name returned more than once maps to the sum of its prices.

        Raises:
            ScryfallAPIError: If any request fails
        """
        prices: Dict[str, float] = {}
        if not names:
            return prices

        url = f"{self.base_url}/cards/collection"
        for i in range(0, len(names), self.COLLECTION_BATCH_LIMIT):
            batch = names[i:i + self.COLLECTION_BATCH_LIMIT]
            payload = {'identifiers': [{'name': name} for name in batch]}

            data = self._request('POST', url, json_body=payload)
            if data is None:
                raise ScryfallAPIError("Collection endpoint returned 404")
            if not isinstance(data, dict) or not isinstance(data.get('data', []), list):
                raise ScryfallAPIError("Malformed collection response")

            for card in data.get('data', []):
                if not isinstance(card, dict):
                    raise ScryfallAPIError("Malformed collection response: card is not an object")
                # Identifiers resolving to the same card are each counted
                name = card.get('name', '')
                prices[name] = prices.get(name, 0.0) + self._parse_price(card)

            not_found = data.get('not_found') or []
            if not_found:
                self.logger.debug(f"{len(not_found)} cards not found on Scryfall")

        return prices

    def _parse_price(self, card: Dict[str, Any]) -> float:
        prices = card.get('prices') or {}
        if not isinstance(prices, dict):
            raise ScryfallAPIError(f"Malformed prices for {card.get('name')}")
        value = prices.get(self.price_currency)
        if value in (None, ''):
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            self.logger.debug(f"Unparseable price {value!r} for {card.get('name')}")
            return 0.0

    def _rate_limit_with_jitter(self):
        """Apply rate limiting with jitter to avoid thundering herd."""
        current_time = time.time()
        time_since_last = current_time - self.last_request_time

        if time_since_last < self.min_request_interval:
            sleep_time = self.min_request_interval - time_since_last
            jitter = sleep_time * 0.2 * (random.random() - 0.5)
            time.sleep(max(0, sleep_time + jitter))

        self.last_request_time = time.time()

    def _request(self, method: str, url: str, json_body: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Send a request and decode the JSON body.

        Returns:
            Decoded response, or None on 404
        """
        try:
            self._rate_limit_with_jitter()
            self.logger.debug(f"{method} {url}")
            response = self.session.request(method, url, json=json_body, timeout=self.timeout)

            if response.status_code == 429:
                retry_after = response.headers.get('Retry-After', '1')
                raise ScryfallAPIError(f"Rate limited, retry after {retry_after}s")

            if response.status_code == 404:
                return None
            elif response.status_code >= 500:
                raise ScryfallAPIError(f"Server error {response.status_code}: {response.text}")
            elif response.status_code != 200:
                raise ScryfallAPIError(f"API request failed with status {response.status_code}: {response.text}")

            return response.json()

        except requests.Timeout:
            raise ScryfallAPIError("Request timeout")
        except requests.ConnectionError as e:
            raise ScryfallAPIError(f"Connection error: {e}")
        except requests.RequestException as e:
            raise ScryfallAPIError(f"Network error: {e}")
        except (json.JSONDecodeError, ValueError) as e:
            raise ScryfallAPIError(f"Invalid JSON response: {e}")

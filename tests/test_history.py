"""
Tests for the navigation history cache.

This module tests cursor navigation, the dual behaviour of advance, the
placeholder fallback and the lazy write-once decklist and price fill.
"""

import random
import threading
import unittest
from unittest.mock import Mock

from command_tower.exceptions import (
    CommanderNotFoundError, DecklistNotFoundError, EDHRECAPIError, ScryfallAPIError
)
from command_tower.history import History
from command_tower.models import CardImage, CommanderCard
from command_tower.scryfall_service import ScryfallService


PLACEHOLDER = CardImage(uri="https://example.test/back.jpg", content=b"back", is_placeholder=True)


class FakeCatalog:
    """Catalog returning commanders from a fixed list, in order."""

    def __init__(self, names=None):
        self.names = list(names or [])
        self.calls = []

    def find_commander(self, selection, query):
        self.calls.append((set(selection), query))
        if not self.names:
            raise CommanderNotFoundError("nothing left")
        name = self.names.pop(0)
        slug = name.lower().replace(' ', '-')
        return CommanderCard(name=name, image_uri=f"https://img.test/{slug}.jpg")


class FakeImages:
    def resolve(self, uri):
        return CardImage(uri=uri, content=b"img")

    def placeholder(self):
        return PLACEHOLDER


class FakePrices:
    """Prices every card at a fixed amount and records the batches."""

    def __init__(self, price=1.0):
        self.price = price
        self.batches = []
        self._lock = threading.Lock()

    def fetch_prices(self, names):
        with self._lock:
            self.batches.append(list(names))
        return {name: self.price for name in names}


def make_decklist(size):
    return "\n".join(f"1 Card {i}" for i in range(size))


class HistoryTestCase(unittest.TestCase):
    """Common fixtures for history tests."""

    def setUp(self):
        self.catalog = FakeCatalog([
            "Atraxa, Grand Unifier", "Edgar Markov", "Meren of Clan Nel Toth", "Krenko, Mob Boss"
        ])
        self.decklists = Mock()
        self.decklists.get_average_decklist.return_value = make_decklist(40)
        self.prices = FakePrices(price=0.5)
        self.history = History(
            catalog=self.catalog,
            decklists=self.decklists,
            prices=self.prices,
            images=FakeImages(),
            price_concurrency=2
        )

    def assert_cursor_valid(self):
        history = self.history
        if history.count >= 0:
            self.assertGreaterEqual(history.back_steps, 0)
            self.assertLessEqual(history.back_steps, history.count)
        else:
            self.assertEqual(history.back_steps, 0)


class TestHistoryNavigation(HistoryTestCase):
    """Test cases for step_back/advance and the cursor invariant."""

    def test_empty_history(self):
        """Test the state of a fresh history."""
        self.assertEqual(self.history.count, -1)
        self.assertEqual(self.history.back_steps, 0)
        self.assertIsNone(self.history.current())
        self.assertIsNone(self.history.step_back())
        self.assertEqual(len(self.history), 0)

    def test_advance_at_frontier_appends(self):
        """Test that advancing at the newest visit fetches and appends."""
        visit = self.history.advance({'W', 'U'}, "t:angel")

        self.assertEqual(visit.name, "Atraxa, Grand Unifier")
        self.assertEqual(self.history.count, 0)
        self.assertEqual(self.history.back_steps, 0)
        self.assertIs(self.history.current(), visit)
        self.assertEqual(self.catalog.calls, [({'W', 'U'}, "t:angel")])
        self.assertIsNone(visit.decklist)
        self.assertIsNone(visit.price)
        self.assertEqual(visit.image.uri, "https://img.test/atraxa,-grand-unifier.jpg")

    def test_step_back_with_single_visit_is_noop(self):
        """Test that the oldest visit cannot be left backwards."""
        first = self.history.advance()

        self.assertIsNone(self.history.step_back())
        self.assertEqual(self.history.back_steps, 0)
        self.assertIs(self.history.current(), first)

    def test_advance_behind_frontier_replays(self):
        """Test that advancing behind the newest visit does not fetch."""
        first = self.history.advance()
        second = self.history.advance()
        third = self.history.advance()

        self.assertIs(self.history.step_back(), second)
        self.assertIs(self.history.step_back(), first)
        self.assertEqual(self.history.back_steps, 2)

        calls_before = len(self.catalog.calls)
        self.assertIs(self.history.advance(), second)
        self.assertEqual(self.history.back_steps, 1)
        self.assertIs(self.history.advance(), third)
        self.assertEqual(self.history.back_steps, 0)
        self.assertEqual(self.history.count, 2)
        self.assertEqual(len(self.catalog.calls), calls_before)

    def test_advance_after_replay_fetches_again(self):
        """Test that a new fetch happens once the cursor is back at the newest visit."""
        self.history.advance()
        self.history.advance()
        self.history.step_back()
        self.history.advance()

        newest = self.history.advance()

        self.assertEqual(newest.name, "Meren of Clan Nel Toth")
        self.assertEqual(self.history.count, 2)

    def test_step_back_bounded_at_oldest(self):
        """Test that step_back returns None once back_steps equals count."""
        self.history.advance()
        self.history.advance()

        self.assertIsNotNone(self.history.step_back())
        self.assertEqual(self.history.back_steps, self.history.count)
        self.assertIsNone(self.history.step_back())
        self.assertEqual(self.history.back_steps, 1)

    def test_random_walk_keeps_cursor_valid(self):
        """Test the cursor invariant over a random mix of operations."""
        catalog = FakeCatalog([f"Commander {i}" for i in range(200)])
        self.history.catalog = catalog
        rng = random.Random(1234)

        for _ in range(300):
            count_before = self.history.count
            back_before = self.history.back_steps
            if rng.random() < 0.5:
                result = self.history.step_back()
                if result is None:
                    self.assertEqual(self.history.back_steps, back_before)
            else:
                expected = None
                if back_before > 0:
                    expected = self.history.entries[count_before - back_before + 1]
                visit = self.history.advance()
                if back_before == 0:
                    self.assertEqual(self.history.count, count_before + 1)
                    self.assertEqual(self.history.back_steps, 0)
                else:
                    self.assertEqual(self.history.count, count_before)
                    self.assertEqual(self.history.back_steps, back_before - 1)
                    self.assertIs(visit, expected)
            self.assert_cursor_valid()
            self.assertIs(
                self.history.current(),
                self.history.entries[self.history.count - self.history.back_steps]
            )

    def test_entries_are_a_copy(self):
        """Test that callers cannot grow the history through entries."""
        self.history.advance()
        self.history.entries.append(None)
        self.assertEqual(len(self.history), 1)


class TestHistoryFailures(HistoryTestCase):
    """Test cases for the placeholder fallback."""

    def test_catalog_not_found_appends_placeholder(self):
        """Test that a failed fetch still returns and appends a visit."""
        self.history.catalog = FakeCatalog([])

        visit = self.history.advance({'R'}, "")

        self.assertTrue(visit.is_placeholder)
        self.assertEqual(visit.name, "")
        self.assertIs(visit.image, PLACEHOLDER)
        self.assertEqual(self.history.count, 0)
        self.assertIs(self.history.current(), visit)

    def test_catalog_transport_error_appends_placeholder(self):
        """Test that transport errors degrade the same way."""
        catalog = Mock()
        catalog.find_commander.side_effect = ScryfallAPIError("Connection error")
        self.history.catalog = catalog

        self.history.advance()
        self.history.advance()

        self.assertEqual(self.history.count, 1)
        self.assertTrue(all(v.is_placeholder for v in self.history.entries))

    def test_malformed_catalog_response_appends_placeholder(self):
        """Test that a card response of the wrong shape degrades to a placeholder."""
        service = ScryfallService(base_url="https://scryfall.test")
        service.min_request_interval = 0
        service.session = Mock()
        response = Mock(status_code=200, headers={}, text="")
        response.json.return_value = ["not", "a", "card"]
        service.session.request.return_value = response
        self.history.catalog = service

        visit = self.history.advance()

        self.assertTrue(visit.is_placeholder)
        self.assertEqual(self.history.count, 0)
        self.assertIs(self.history.current(), visit)

    def test_retrieval_log_names_colours(self):
        """Test that the retrieval log line describes the commander."""
        catalog = Mock()
        catalog.find_commander.return_value = CommanderCard(
            name="Esika, God of the Tree", image_uri="https://img.test/esika.jpg",
            color_identity=['G'], type_line="Legendary Creature — God // Legendary Enchantment"
        )
        self.history.catalog = catalog

        with self.assertLogs('command_tower.history', level='INFO') as logs:
            self.history.advance()

        self.assertIn("Esika, God of the Tree (G, double-faced)", logs.output[0])

    def test_placeholder_never_fetches_decklist(self):
        """Test that placeholder visits have no decklist or price."""
        self.history.catalog = FakeCatalog([])
        visit = self.history.advance()

        self.assertEqual(self.history.lazy_decklist(visit), "")
        self.assertEqual(self.history.lazy_price(visit), 0.0)
        self.decklists.get_average_decklist.assert_not_called()
        self.assertIsNone(visit.price)


class TestHistoryLazyFill(HistoryTestCase):
    """Test cases for lazy_decklist and lazy_price."""

    def test_decklist_fetched_once(self):
        """Test that the decklist is fetched on first access only."""
        visit = self.history.advance()

        first = self.history.lazy_decklist(visit)
        second = self.history.lazy_decklist(visit)

        self.assertEqual(first, second)
        self.assertEqual(visit.decklist, first)
        self.decklists.get_average_decklist.assert_called_once_with("Atraxa, Grand Unifier")

    def test_decklist_failure_is_retryable(self):
        """Test that a failed decklist fetch leaves the field unset."""
        visit = self.history.advance()
        self.decklists.get_average_decklist.side_effect = [
            EDHRECAPIError("timeout"),
            "1 Sol Ring\n1 Command Tower",
        ]

        self.assertEqual(self.history.lazy_decklist(visit), "")
        self.assertIsNone(visit.decklist)
        self.assertEqual(self.history.lazy_decklist(visit), "1 Sol Ring\n1 Command Tower")
        self.assertEqual(self.decklists.get_average_decklist.call_count, 2)

    def test_decklist_not_found_returns_empty(self):
        """Test that a commander without decks yields empty text."""
        visit = self.history.advance()
        self.decklists.get_average_decklist.side_effect = DecklistNotFoundError("no decks")

        self.assertEqual(self.history.lazy_decklist(visit), "")
        self.assertIsNone(visit.decklist)

    def test_price_computed_once(self):
        """Test that the price is aggregated on first access only."""
        visit = self.history.advance()

        first = self.history.lazy_price(visit)
        second = self.history.lazy_price(visit)

        self.assertAlmostEqual(first, 20.0)
        self.assertEqual(first, second)
        self.assertEqual(len(self.prices.batches), 2)
        self.decklists.get_average_decklist.assert_called_once()

    def test_price_with_empty_decklist_not_cached(self):
        """Test that a missing decklist returns zero without storing it."""
        visit = self.history.advance()
        self.decklists.get_average_decklist.side_effect = DecklistNotFoundError("no decks")

        self.assertEqual(self.history.lazy_price(visit), 0.0)
        self.assertIsNone(visit.price)
        self.assertEqual(self.prices.batches, [])

    def test_zero_price_is_cached(self):
        """Test that a computed zero total is a real value and is not recomputed."""
        self.history.prices = FakePrices(price=0.0)
        visit = self.history.advance()

        self.assertEqual(self.history.lazy_price(visit), 0.0)
        self.assertEqual(visit.price, 0.0)
        self.history.lazy_price(visit)
        self.assertEqual(len(self.history.prices.batches), 2)

    def test_price_with_failed_chunk_not_cached(self):
        """Test that a degraded total is returned but recomputed next time."""
        visit = self.history.advance()
        prices = Mock()
        prices.fetch_prices.side_effect = [
            RuntimeError("boom"),
            {"Card 20": 1.0},
            {"Card 0": 1.0},
            {"Card 20": 1.0},
        ]
        self.history.prices = prices
        self.history.price_concurrency = 2

        degraded = self.history.lazy_price(visit)
        self.assertIsNone(visit.price)
        recomputed = self.history.lazy_price(visit)

        self.assertLessEqual(degraded, 1.0)
        self.assertAlmostEqual(recomputed, 2.0)
        self.assertEqual(visit.price, recomputed)
        self.assertEqual(prices.fetch_prices.call_count, 4)

    def test_price_without_dispatched_chunks_not_cached(self):
        """Test that a non-positive concurrency leaves the price unset."""
        visit = self.history.advance()
        self.history.price_concurrency = 0

        self.assertEqual(self.history.lazy_price(visit), 0.0)
        self.assertIsNone(visit.price)
        self.assertEqual(self.prices.batches, [])

        self.history.price_concurrency = 2
        self.assertAlmostEqual(self.history.lazy_price(visit), 20.0)
        self.assertAlmostEqual(visit.price, 20.0)
        self.assertEqual(len(self.prices.batches), 2)

    def test_written_fields_cannot_be_overwritten(self):
        """Test that filled decklist and price are write-once."""
        visit = self.history.advance()
        self.history.lazy_price(visit)

        with self.assertRaises(AttributeError):
            visit.decklist = "1 Island"
        with self.assertRaises(AttributeError):
            visit.price = 99.0
        with self.assertRaises(AttributeError):
            visit.name = "Someone Else"

    def test_current_helpers(self):
        """Test current_decklist and current_price on an empty and filled history."""
        self.assertEqual(self.history.current_decklist(), "")
        self.assertEqual(self.history.current_price(), 0.0)

        self.history.advance()
        self.assertEqual(self.history.current_decklist(), make_decklist(40))
        self.assertAlmostEqual(self.history.current_price(), 20.0)


class TestHistoryWalkthrough(HistoryTestCase):
    """End-to-end navigation example."""

    def test_browse_back_and_price(self):
        """Test fetch, back, fetch, back, then price the first commander."""
        visit0 = self.history.advance([], "")
        self.assertEqual(visit0.name, "Atraxa, Grand Unifier")
        self.assertEqual((self.history.count, self.history.back_steps), (0, 0))

        self.assertIsNone(self.history.step_back())
        self.assertIs(self.history.current(), visit0)

        visit1 = self.history.advance([], "")
        self.assertIsNot(visit1, visit0)
        self.assertEqual((self.history.count, self.history.back_steps), (1, 0))

        self.assertIs(self.history.step_back(), visit0)
        self.assertEqual(self.history.back_steps, 1)

        price = self.history.lazy_price(visit0)

        self.assertEqual(sorted(len(b) for b in self.prices.batches), [20, 20])
        self.assertAlmostEqual(price, 20.0)
        self.assertEqual(visit0.price, price)
        self.assertIsNone(visit1.price)


if __name__ == '__main__':
    unittest.main()

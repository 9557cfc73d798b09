"""
Chunked decklist pricing.

A decklist is split into a fixed number of balanced, contiguous chunks and
every chunk is priced on its own worker thread. Partial sums are joined into
one total; a chunk that fails contributes nothing instead of failing the
whole aggregation.
"""

import logging
from typing import Callable, Dict, List, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from .models import PriceBreakdown


logger = logging.getLogger(__name__)

PriceFetcher = Callable[[List[str]], Dict[str, float]]


def split_into_chunks(lines: Sequence[str], number_of_chunks: int) -> List[List[str]]:
    """
    Split lines into ``number_of_chunks`` contiguous slices.

    Slice sizes differ by at most one and the original order is kept. If there
    are more chunks than lines, the first ``len(lines)`` chunks hold a single
    line and the remaining ones are empty.

    Args:
        lines: Decklist lines to split
        number_of_chunks: How many slices to produce

    Returns:
        List of slices, or an empty list if there is nothing to split
    """
    if not lines or number_of_chunks <= 0:
        return []

    total = len(lines)
    if number_of_chunks > total:
        return [[line] for line in lines] + [[] for _ in range(number_of_chunks - total)]

    chunks = []
    low = 0
    for i in range(number_of_chunks):
        high = ((i + 1) * total) // number_of_chunks
        chunks.append(list(lines[low:high]))
        low = high
    return chunks


def extract_card_name(line: str) -> str:
    """Return the card name of a ``"<quantity> <name>"`` line."""
    stripped = line.strip()
    _, separator, name = stripped.partition(' ')
    if not separator:
        return stripped
    return name.strip()


def _price_chunk(index: int, chunk: List[str], fetch_prices: PriceFetcher) -> float:
    names = [extract_card_name(line) for line in chunk]
    names = [name for name in names if name]
    if not names:
        return 0.0

    logger.debug(f"Pricing chunk {index} ({len(names)} cards)")
    prices = fetch_prices(names)
    return sum(float(price or 0.0) for price in prices.values())


def aggregate_price_detailed(lines: Sequence[str], concurrency: int,
                             fetch_prices: PriceFetcher) -> PriceBreakdown:
    """
    Price a decklist in ``concurrency`` parallel chunks.

    Args:
        lines: Decklist lines formatted as ``"<quantity> <name>"``
        concurrency: Number of chunks (and at most that many worker threads)
        fetch_prices: Batch price lookup returning a name to price mapping

    Returns:
        PriceBreakdown with the total, per-chunk totals and failure count
    """
    chunks = [chunk for chunk in split_into_chunks(lines, concurrency) if chunk]
    if not chunks:
        return PriceBreakdown()

    chunk_totals = [0.0] * len(chunks)
    failed = 0

    with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
        future_to_index = {
            executor.submit(_price_chunk, index, chunk, fetch_prices): index
            for index, chunk in enumerate(chunks)
        }

        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                chunk_totals[index] = future.result()
            except Exception as e:
                logger.warning(f"Failed to price chunk {index} ({len(chunks[index])} cards): {e}")
                failed += 1

    breakdown = PriceBreakdown(total=sum(chunk_totals), chunk_totals=chunk_totals, failed_chunks=failed)
    logger.info(f"Price: {breakdown.total:.2f} ({breakdown.dispatched_chunks} chunks, {failed} failed)")
    return breakdown


def aggregate_price(lines: Sequence[str], concurrency: int, fetch_prices: PriceFetcher) -> float:
    """Price a decklist in parallel chunks and return the summed total."""
    return aggregate_price_detailed(lines, concurrency, fetch_prices).total

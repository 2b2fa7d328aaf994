"""
Terminal consumers.

Each consumer drives a fresh iterator through iterating(), so an early exit
(first match, failing predicate) cancels the iterator exactly once, while
exhaustion and upstream failures do not. An upstream failure aborts the
consumer with no partial result.

Note: this module defines ``min``, ``max`` and ``sum``; the builtins are not
used here.
"""

from typing import Any, Callable, Dict, List, Optional

from lazyseq.sequences import iterating, resolve


async def first(source, default=None):
    """Return the first element, or ``default`` if the sequence is empty."""
    with iterating(source) as iterator:
        async for element in iterator:
            return element
    return default


async def first_where(source, predicate: Callable, default=None):
    """Return the first element satisfying ``predicate``, or ``default``."""
    with iterating(source) as iterator:
        async for element in iterator:
            if await resolve(predicate, element):
                return element
    return default


async def contains(source, value) -> bool:
    with iterating(source) as iterator:
        async for element in iterator:
            if element == value:
                return True
    return False


async def contains_where(source, predicate: Callable) -> bool:
    with iterating(source) as iterator:
        async for element in iterator:
            if await resolve(predicate, element):
                return True
    return False


async def all_satisfy(source, predicate: Callable) -> bool:
    """False at the first element failing ``predicate``; True for an empty sequence."""
    with iterating(source) as iterator:
        async for element in iterator:
            if not await resolve(predicate, element):
                return False
    return True


async def reduce(source, initial, combine: Callable):
    """Fold left to right: ``combine(combine(initial, e0), e1)...``"""
    accumulator = initial
    with iterating(source) as iterator:
        async for element in iterator:
            accumulator = await resolve(combine, accumulator, element)
    return accumulator


async def count(source) -> int:
    total = 0
    with iterating(source) as iterator:
        async for _ in iterator:
            total += 1
    return total


async def _rank(key: Optional[Callable], element):
    return element if key is None else await resolve(key, element)


async def _in_order(by: Optional[Callable], a, b) -> bool:
    if by is None:
        return a < b
    return bool(await resolve(by, a, b))


async def _extreme(source, key: Optional[Callable], by: Optional[Callable],
                   default, smallest: bool):
    """
    Track the best element so far, seeded with the first one.

    ``by(a, b)`` is an "a is ordered before b" comparator replacing ``<``; it
    is called once per element after the first, on keys when ``key`` is given.
    Ties keep the earlier element.
    """
    with iterating(source) as iterator:
        try:
            best = await iterator.__anext__()
        except StopAsyncIteration:
            return default
        best_rank = await _rank(key, best)

        async for element in iterator:
            rank = await _rank(key, element)
            if smallest:
                better = await _in_order(by, rank, best_rank)
            else:
                better = await _in_order(by, best_rank, rank)
            if better:
                best, best_rank = element, rank
    return best


async def min(source, key: Optional[Callable] = None, default=None,
              by: Optional[Callable] = None):
    """Smallest element, or ``default`` when empty."""
    return await _extreme(source, key, by, default, smallest=True)


async def max(source, key: Optional[Callable] = None, default=None,
              by: Optional[Callable] = None):
    """Largest element, or ``default`` when empty."""
    return await _extreme(source, key, by, default, smallest=False)


# ---------- collection-style reductions ----------

async def to_list(source) -> List[Any]:
    items = []
    with iterating(source) as iterator:
        async for element in iterator:
            items.append(element)
    return items


async def sum(source, start=0):
    total = start
    with iterating(source) as iterator:
        async for element in iterator:
            total += element
    return total


async def last(source, default=None):
    """Return the last element, or ``default`` if empty."""
    last_item = default
    with iterating(source) as iterator:
        async for element in iterator:
            last_item = element
    return last_item


async def group_by(source, key_fn: Callable) -> Dict[Any, List[Any]]:
    """Group elements by the result of key_fn, preserving encounter order."""
    groups: Dict[Any, List[Any]] = {}
    with iterating(source) as iterator:
        async for element in iterator:
            key = await resolve(key_fn, element)
            groups.setdefault(key, []).append(element)
    return groups

from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from lazyseq import adapters, consumers
from lazyseq.sequences import (
    AnySequence,
    AsyncSequence,
    AsyncSequenceIterator,
    as_sequence,
    iterating,
)


def validate_page(page_number: int, page_size: int) -> None:
    if page_number < 1:
        raise ValueError("Page number must be >= 1")
    if page_size < 1:
        raise ValueError("Page size must be >= 1")


class LazySequence(AsyncSequence):
    """
    A chainable, lazy asynchronous sequence. Operators build a chain of
    adapter sequences; nothing runs until a terminal method (or an
    ``async for``) pulls from it, and then only as much as is needed.

    The source can be another AsyncSequence, a re-iterable like a list or a
    range, an async iterable, or a zero-argument async-iterator factory such
    as an async generator function.
    """
    def __init__(self, source):
        if isinstance(source, LazySequence):
            source = source._sequence
        self._sequence = as_sequence(source)

    def make_iterator(self) -> AsyncSequenceIterator:
        # No wrapper iterator: the chain's own iterator is handed out directly.
        return self._sequence.make_iterator()

    # --------- chainable operators (lazy) ----------
    def map(self, fn: Callable) -> "LazySequence":
        return LazySequence(adapters.MapSequence(self._sequence, fn))

    def compact_map(self, fn: Callable) -> "LazySequence":
        """map() that drops the elements for which fn returns None"""
        return LazySequence(adapters.CompactMapSequence(self._sequence, fn))

    def filter(self, pred: Callable) -> "LazySequence":
        return LazySequence(adapters.FilterSequence(self._sequence, pred))

    def drop_while(self, pred: Callable) -> "LazySequence":
        return LazySequence(adapters.DropWhileSequence(self._sequence, pred))

    def skip(self, n: int) -> "LazySequence":
        return LazySequence(adapters.DropFirstSequence(self._sequence, n))

    def drop_first(self, n: int) -> "LazySequence":
        """Alias for skip()"""
        return self.skip(n)

    def prefix_while(self, pred: Callable) -> "LazySequence":
        return LazySequence(adapters.PrefixWhileSequence(self._sequence, pred))

    def take(self, n: int) -> "LazySequence":
        return LazySequence(adapters.PrefixSequence(self._sequence, n))

    def prefix(self, n: int) -> "LazySequence":
        """Alias for take()"""
        return self.take(n)

    def concat(self, *others) -> "LazySequence":
        sequence = self._sequence
        for other in others:
            sequence = adapters.ConcatSequence(sequence, other)
        return LazySequence(sequence)

    def append(self, other) -> "LazySequence":
        return self.concat(other)

    def flat_map(self, fn: Callable) -> "LazySequence":
        return LazySequence(adapters.FlatMapSequence(self._sequence, fn))

    def batch(self, size: int) -> "LazySequence":
        return LazySequence(adapters.BatchSequence(self._sequence, size))

    def chunk(self, size: int) -> "LazySequence":
        """Alias for batch() - groups elements into chunks of specified size"""
        return self.batch(size)

    def enumerate(self, start: int = 0) -> "LazySequence":
        return LazySequence(adapters.EnumerateSequence(self._sequence, start))

    def page(self, page_number: int, page_size: int) -> "LazySequence":
        """Get a specific page of results (1-indexed)"""
        validate_page(page_number, page_size)
        offset = (page_number - 1) * page_size
        return self.skip(offset).take(page_size)

    async def paginate(self, page_size: int) -> AsyncIterator[List[Any]]:
        """Yield successive pages of up to page_size elements in a single pass"""
        with iterating(self.batch(page_size)) as pages:
            async for page in pages:
                yield list(page)

    def erase(self) -> AnySequence:
        """Hide the adapter chain behind an AnySequence"""
        return AnySequence(self._sequence)

    # --------- terminal operations (force evaluation) ----------
    async def to_list(self) -> List[Any]:
        return await consumers.to_list(self._sequence)

    async def first(self, default=None):
        return await consumers.first(self._sequence, default)

    async def first_where(self, pred: Callable, default=None):
        return await consumers.first_where(self._sequence, pred, default)

    async def find(self, pred: Callable):
        """Return the first element that satisfies the predicate, or None"""
        return await consumers.first_where(self._sequence, pred)

    async def contains(self, value) -> bool:
        return await consumers.contains(self._sequence, value)

    async def any(self, pred: Optional[Callable] = None) -> bool:
        """Return True if any element is truthy (or satisfies predicate)"""
        return await consumers.contains_where(self._sequence, pred or bool)

    async def all(self, pred: Optional[Callable] = None) -> bool:
        """Return True if all elements are truthy (or satisfy predicate)"""
        return await consumers.all_satisfy(self._sequence, pred or bool)

    async def reduce(self, fn: Callable, initial):
        """Apply fn(accumulator, element) cumulatively, from left to right"""
        return await consumers.reduce(self._sequence, initial, fn)

    async def count(self) -> int:
        return await consumers.count(self._sequence)

    async def sum(self, start=0):
        return await consumers.sum(self._sequence, start)

    async def min(self, key: Optional[Callable] = None, default=None, by: Optional[Callable] = None):
        return await consumers.min(self._sequence, key=key, default=default, by=by)

    async def max(self, key: Optional[Callable] = None, default=None, by: Optional[Callable] = None):
        return await consumers.max(self._sequence, key=key, default=default, by=by)

    async def last(self, default=None):
        return await consumers.last(self._sequence, default)

    async def group_by(self, key_fn: Callable) -> Dict[Any, List[Any]]:
        return await consumers.group_by(self._sequence, key_fn)

    def __repr__(self):
        return f"LazySequence({self._sequence!r})"

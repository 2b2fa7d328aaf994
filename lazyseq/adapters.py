"""
Lazy transformation adapters.

Every adapter is an AsyncSequence wrapping an upstream sequence together with
its configuration (a transform, a predicate, a count). Its iterator owns the
upstream iterator and does all of its work inside _produce(): the upstream is
pulled exactly once per element that is produced or discarded, and each
transform or predicate runs at most once per element, in source order.

Transforms and predicates may be plain callables or coroutine functions.
"""

import logging
from typing import Callable, List, Optional

from lazyseq.sequences import (
    AsyncSequence,
    AsyncSequenceIterator,
    as_sequence,
    checked_iterator,
    release,
    resolve,
)

logger = logging.getLogger(__name__)


def _check_count(name: str, value) -> int:
    value = int(value)
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


class _AdapterIterator(AsyncSequenceIterator):
    """Iterator that owns a single upstream iterator."""

    def __init__(self, upstream: AsyncSequenceIterator):
        super().__init__()
        self._upstream = upstream

    async def _pull(self):
        return await self._upstream.__anext__()

    def _on_cancel(self) -> None:
        release(self._upstream)

    def _on_failure(self) -> None:
        # Transform/predicate errors leave the upstream running; upstream
        # failures have already ended it.
        release(self._upstream)


class _UnaryAdapter(AsyncSequence):
    iterator_class = None

    def __init__(self, upstream, argument):
        self._upstream = as_sequence(upstream)
        self._argument = argument

    def make_iterator(self) -> AsyncSequenceIterator:
        return self.iterator_class(checked_iterator(self._upstream), self._argument)

    def __repr__(self):
        return f"{type(self).__name__}({self._upstream!r}, {self._argument!r})"


# ---------- map / compact_map / filter ----------

class _MapIterator(_AdapterIterator):

    def __init__(self, upstream, transform: Callable):
        super().__init__(upstream)
        self._transform = transform

    async def _produce(self):
        element = await self._pull()
        return await resolve(self._transform, element)


class MapSequence(_UnaryAdapter):
    """Applies ``transform`` to every element."""
    iterator_class = _MapIterator


class _CompactMapIterator(_AdapterIterator):

    def __init__(self, upstream, transform: Callable):
        super().__init__(upstream)
        self._transform = transform

    async def _produce(self):
        while True:
            element = await self._pull()
            result = await resolve(self._transform, element)
            if result is not None:
                return result


class CompactMapSequence(_UnaryAdapter):
    """Applies ``transform`` and skips elements for which it returns None."""
    iterator_class = _CompactMapIterator


class _FilterIterator(_AdapterIterator):

    def __init__(self, upstream, predicate: Callable):
        super().__init__(upstream)
        self._predicate = predicate

    async def _produce(self):
        while True:
            element = await self._pull()
            if await resolve(self._predicate, element):
                return element


class FilterSequence(_UnaryAdapter):
    """Keeps the elements satisfying ``predicate``."""
    iterator_class = _FilterIterator


# ---------- drop ----------

class _DropWhileIterator(_AdapterIterator):

    def __init__(self, upstream, predicate: Callable):
        super().__init__(upstream)
        self._predicate = predicate
        self._dropping = True

    async def _produce(self):
        while self._dropping:
            element = await self._pull()
            if not await resolve(self._predicate, element):
                self._dropping = False
                return element
        return await self._pull()


class DropWhileSequence(_UnaryAdapter):
    """Skips the leading elements satisfying ``predicate``, then passes everything through."""
    iterator_class = _DropWhileIterator


class _DropFirstIterator(_AdapterIterator):

    def __init__(self, upstream, count: int):
        super().__init__(upstream)
        self._remaining = count

    async def _produce(self):
        while self._remaining > 0:
            await self._pull()
            self._remaining -= 1
        return await self._pull()


class DropFirstSequence(_UnaryAdapter):
    """Skips the first ``count`` elements."""
    iterator_class = _DropFirstIterator

    def __init__(self, upstream, count: int):
        super().__init__(upstream, _check_count("count", count))


# ---------- prefix ----------

class _PrefixWhileIterator(_AdapterIterator):

    def __init__(self, upstream, predicate: Callable):
        super().__init__(upstream)
        self._predicate = predicate

    async def _produce(self):
        element = await self._pull()
        if await resolve(self._predicate, element):
            return element
        release(self._upstream)
        raise StopAsyncIteration


class PrefixWhileSequence(_UnaryAdapter):
    """Passes elements through until ``predicate`` first fails, then ends."""
    iterator_class = _PrefixWhileIterator


class _PrefixIterator(_AdapterIterator):

    def __init__(self, upstream, count: int):
        super().__init__(upstream)
        self._remaining = count

    async def _produce(self):
        if self._remaining == 0:
            release(self._upstream)
            raise StopAsyncIteration
        element = await self._pull()
        self._remaining -= 1
        return element


class PrefixSequence(_UnaryAdapter):
    """Produces at most ``count`` elements."""
    iterator_class = _PrefixIterator

    def __init__(self, upstream, count: int):
        super().__init__(upstream, _check_count("count", count))


# ---------- concatenation ----------

class _ConcatIterator(AsyncSequenceIterator):

    def __init__(self, first: AsyncSequenceIterator, second: AsyncSequence):
        super().__init__()
        self._first = first
        self._second_sequence = second
        self._second: Optional[AsyncSequenceIterator] = None

    def _active(self) -> AsyncSequenceIterator:
        return self._first if self._second is None else self._second

    async def _produce(self):
        if self._second is None:
            try:
                return await self._first.__anext__()
            except StopAsyncIteration:
                if self._cancelled:
                    raise
                logger.debug("First upstream exhausted, switching to second")
                self._second = checked_iterator(self._second_sequence)
        return await self._second.__anext__()

    def _on_cancel(self) -> None:
        release(self._active())

    def _on_failure(self) -> None:
        release(self._active())


class ConcatSequence(AsyncSequence):
    """All elements of ``first`` followed by all elements of ``second``."""

    def __init__(self, first, second):
        self._first = as_sequence(first)
        self._second = as_sequence(second)

    def make_iterator(self) -> AsyncSequenceIterator:
        return _ConcatIterator(checked_iterator(self._first), self._second)

    def __repr__(self):
        return f"ConcatSequence({self._first!r}, {self._second!r})"


# ---------- flat_map ----------

class _FlatMapIterator(_AdapterIterator):

    def __init__(self, upstream, transform: Callable):
        super().__init__(upstream)
        self._transform = transform
        self._inner: Optional[AsyncSequenceIterator] = None

    async def _produce(self):
        while True:
            if self._inner is None:
                if self._cancelled:
                    raise StopAsyncIteration
                element = await self._pull()
                if self._cancelled:
                    # cancelled while the outer pull was in flight
                    raise StopAsyncIteration
                inner = await resolve(self._transform, element)
                self._inner = checked_iterator(as_sequence(inner))
            try:
                return await self._inner.__anext__()
            except StopAsyncIteration:
                self._inner = None

    def _release_all(self) -> None:
        if self._inner is not None:
            release(self._inner)
        release(self._upstream)

    def _on_cancel(self) -> None:
        self._release_all()

    def _on_failure(self) -> None:
        self._release_all()


class FlatMapSequence(_UnaryAdapter):
    """Maps each element to a sequence (or iterable) and flattens the results in order."""
    iterator_class = _FlatMapIterator


# ---------- batch / enumerate ----------

class _BatchIterator(_AdapterIterator):

    def __init__(self, upstream, size: int):
        super().__init__(upstream)
        self._size = size

    async def _produce(self):
        bucket: List = []
        while len(bucket) < self._size:
            try:
                bucket.append(await self._pull())
            except StopAsyncIteration:
                if bucket:
                    break
                raise
        return tuple(bucket)


class BatchSequence(_UnaryAdapter):
    """Groups elements into tuples of ``size``; the last tuple may be shorter."""
    iterator_class = _BatchIterator

    def __init__(self, upstream, size: int):
        size = int(size)
        if size < 1:
            raise ValueError(f"Batch size must be >= 1, got {size}")
        super().__init__(upstream, size)


class _EnumerateIterator(_AdapterIterator):

    def __init__(self, upstream, start: int):
        super().__init__(upstream)
        self._index = start

    async def _produce(self):
        element = await self._pull()
        index = self._index
        self._index += 1
        return index, element


class EnumerateSequence(_UnaryAdapter):
    """Pairs every element with its position, starting at ``start``."""
    iterator_class = _EnumerateIterator

    def __init__(self, upstream, start: int = 0):
        super().__init__(upstream, int(start))

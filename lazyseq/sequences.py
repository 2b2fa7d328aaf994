"""
Sequence and iterator contracts for asynchronous pull-based iteration.

An AsyncSequence is an immutable description of how to start iterating. Every
call to make_iterator() returns a fresh AsyncSequenceIterator that holds all of
the progress state and is owned by exactly one consumer at a time.

Iterators are driven with ``await iterator.__anext__()`` (or ``async for``):
- the next element is returned,
- StopAsyncIteration signals exhaustion,
- any other exception is an upstream failure and is propagated verbatim.

Once an iterator has been exhausted or has failed it repeats that outcome on
every further call. cancel() is synchronous, idempotent and best effort: the
next pull after it signals exhaustion.

Calling __anext__() concurrently on one iterator is a caller error; iterators
do not guard against it.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, AsyncIterator, Callable, Iterable, Iterator, Optional

logger = logging.getLogger(__name__)


class SequenceError(Exception):
    """Base class for errors raised by lazyseq itself."""
    pass


class ContractViolationError(SequenceError):
    """Raised when a sequence or iterator breaks the iteration protocol."""
    pass


async def resolve(fn: Callable, *args) -> Any:
    """Call a sync or async callable and return its (awaited) result."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class AsyncSequenceIterator(ABC):
    """
    Stateful cursor over a sequence.

    Subclasses implement _produce(), which returns the next element or raises
    StopAsyncIteration, and may override _on_cancel() to forward cancellation
    to whatever they own. The terminal-state bookkeeping lives here so every
    iterator in a chain behaves the same way after it ends.
    """

    def __init__(self):
        self._finished = False
        self._cancelled = False
        self._failure: Optional[BaseException] = None

    @property
    def finished(self) -> bool:
        """True once the iterator has ended itself (exhausted, failed or cancelled)."""
        return self._finished

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._failure is not None:
            raise self._failure
        if self._finished:
            raise StopAsyncIteration
        if self._cancelled:
            self._finish()
            raise StopAsyncIteration

        try:
            element = await self._produce()
        except StopAsyncIteration:
            self._finish()
            raise
        except Exception as e:
            self._fail(e)
            raise

        return element

    def cancel(self) -> None:
        """Ask the iterator to stop producing elements. Never suspends."""
        if self._cancelled or self._finished:
            return
        self._cancelled = True
        logger.debug(f"Cancelling {type(self).__name__}")
        self._on_cancel()

    @abstractmethod
    async def _produce(self):
        """Return the next element or raise StopAsyncIteration."""
        ...

    def _on_cancel(self) -> None:
        """Hook for releasing owned resources on cancel()."""
        pass

    def _on_failure(self) -> None:
        """Hook for releasing owned resources after a failure."""
        pass

    def _finish(self) -> None:
        if not self._finished:
            self._finished = True
            logger.debug(f"{type(self).__name__} exhausted")

    def _fail(self, error: BaseException) -> None:
        self._failure = error
        self._finished = True
        logger.debug(f"{type(self).__name__} failed: {error!r}")
        self._on_failure()


def release(iterator: AsyncSequenceIterator) -> None:
    """Cancel an owned iterator unless it has already ended itself."""
    if not iterator.finished:
        iterator.cancel()


class AsyncSequence(ABC):
    """Immutable, re-entrant description of an asynchronous iteration."""

    @abstractmethod
    def make_iterator(self) -> AsyncSequenceIterator:
        ...

    def __aiter__(self) -> AsyncSequenceIterator:
        # A bare ``async for`` does not cancel on break; use iterating() for that.
        return checked_iterator(self)


def checked_iterator(sequence: AsyncSequence) -> AsyncSequenceIterator:
    """Make an iterator and verify it honours the iterator contract."""
    iterator = sequence.make_iterator()
    if not isinstance(iterator, AsyncSequenceIterator):
        raise ContractViolationError(
            f"{type(sequence).__name__}.make_iterator() returned "
            f"{type(iterator).__name__}, expected an AsyncSequenceIterator"
        )
    return iterator


# ---------- Sources ----------

class _IterableIterator(AsyncSequenceIterator):

    def __init__(self, iterator: Iterator):
        super().__init__()
        self._iterator = iterator

    async def _produce(self):
        try:
            return next(self._iterator)
        except StopIteration:
            raise StopAsyncIteration

    def _on_cancel(self) -> None:
        close = getattr(self._iterator, "close", None)
        if close is not None:
            close()


class IterableSequence(AsyncSequence):
    """
    Sequence over a synchronous iterable.

    The iterable should be re-iterable (list, tuple, range, ...). A one-shot
    iterator such as a generator object only produces its elements once.
    """

    def __init__(self, iterable: Iterable):
        self._iterable = iterable

    def make_iterator(self) -> AsyncSequenceIterator:
        return _IterableIterator(iter(self._iterable))

    def __repr__(self):
        return f"IterableSequence({self._iterable!r})"


# Background aclose() tasks; the loop itself only keeps weak references.
_pending_closes = set()


def _close_done(task: "asyncio.Task") -> None:
    _pending_closes.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Closing async source failed: {task.exception()!r}")


class _AsyncIterableIterator(AsyncSequenceIterator):

    def __init__(self, iterator: AsyncIterator):
        super().__init__()
        self._iterator = iterator
        self._pulling = False
        self._closed = False

    async def _produce(self):
        self._pulling = True
        try:
            return await self._iterator.__anext__()
        finally:
            self._pulling = False
            if self._cancelled:
                # cancelled while the pull was in flight
                await self._close()

    async def _close(self) -> None:
        aclose = getattr(self._iterator, "aclose", None)
        if aclose is None or self._closed:
            return
        self._closed = True
        try:
            await aclose()
        except Exception as e:
            logger.error(f"Closing async source failed: {e!r}")

    def _on_cancel(self) -> None:
        # An async generator can only be closed when it is not mid-pull, and
        # aclose() has to be awaited, so an idle source is closed from a task.
        # A source that is mid-pull is closed by _produce() once the pull ends.
        if self._pulling or self._closed or not hasattr(self._iterator, "aclose"):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._close())
        _pending_closes.add(task)
        task.add_done_callback(_close_done)


class AsyncIterableSequence(AsyncSequence):
    """
    Sequence over an asynchronous source.

    ``source`` is either a zero-argument callable returning an async iterator
    (an async generator function, for instance) or an async iterable. With a
    callable every iterator gets a fresh source; an async generator object is
    one-shot.
    """

    def __init__(self, source):
        self._source = source

    def make_iterator(self) -> AsyncSequenceIterator:
        if hasattr(self._source, "__aiter__"):
            iterator = self._source.__aiter__()
        elif callable(self._source):
            iterator = self._source()
        else:
            raise ContractViolationError(
                f"{type(self._source).__name__} is neither an async iterable nor a factory"
            )
        if not hasattr(iterator, "__anext__"):
            raise ContractViolationError(
                f"Async source produced {type(iterator).__name__}, which has no __anext__"
            )
        return _AsyncIterableIterator(iterator)


class _AnyIterator(AsyncSequenceIterator):

    def __init__(self, base: AsyncSequenceIterator):
        super().__init__()
        self._base = base

    async def _produce(self):
        return await self._base.__anext__()

    def _on_cancel(self) -> None:
        release(self._base)

    def _on_failure(self) -> None:
        release(self._base)


class AnySequence(AsyncSequence):
    """Type-erased wrapper for handing a sequence across an API boundary."""

    def __init__(self, base: AsyncSequence):
        if isinstance(base, AnySequence):
            base = base._base
        self._base = base

    def make_iterator(self) -> AsyncSequenceIterator:
        return _AnyIterator(checked_iterator(self._base))

    def __repr__(self):
        return f"AnySequence({self._base!r})"


def as_sequence(source) -> AsyncSequence:
    """Coerce a sequence, (async) iterable or async-iterator factory into an AsyncSequence."""
    if isinstance(source, AsyncSequence):
        return source
    if hasattr(source, "__aiter__"):
        return AsyncIterableSequence(source)
    if hasattr(source, "__iter__"):
        return IterableSequence(source)
    if callable(source):
        return AsyncIterableSequence(source)
    raise TypeError(f"Cannot iterate over {type(source).__name__}")


# ---------- Control flow ----------

@contextmanager
def iterating(source):
    """
    Drive a sequence with cancel-on-early-exit semantics.

        with iterating(seq) as it:
            async for x in it:
                if done(x):
                    break

    Leaving the block before the iterator has ended itself (break, return, an
    exception raised by the body) cancels it exactly once. Exhaustion and
    upstream failures end the iterator on their own, so no cancel is issued.
    """
    iterator = checked_iterator(as_sequence(source))
    try:
        yield iterator
    finally:
        release(iterator)


async def for_each(source, body: Callable) -> None:
    """Run body(element) for every element; a body returning False stops early."""
    with iterating(source) as iterator:
        async for element in iterator:
            if await resolve(body, element) is False:
                break

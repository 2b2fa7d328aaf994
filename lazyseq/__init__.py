"""Lazy, cancellable asynchronous sequences."""

__version__ = "1.0.0"

from lazyseq.sequences import (
    AnySequence,
    AsyncIterableSequence,
    AsyncSequence,
    AsyncSequenceIterator,
    ContractViolationError,
    IterableSequence,
    SequenceError,
    as_sequence,
    for_each,
    iterating,
)
from lazyseq.lazy import LazySequence

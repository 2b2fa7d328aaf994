import asyncio
from time import perf_counter

from lazyseq.lazy import LazySequence
from lazyseq.sequences import AsyncSequence, AsyncSequenceIterator, iterating
from lazyseq.utils import setup_logging


async def expensive_transform(x):
    # Simulate a costly step so laziness is visible
    print(f"  computing f({x}) ...")
    await asyncio.sleep(0.2)  # pretend this is expensive
    return x * x


class _CountdownIterator(AsyncSequenceIterator):

    def __init__(self, start):
        super().__init__()
        self._next = start

    async def _produce(self):
        if self._next == 0:
            raise StopAsyncIteration
        print(f"  producing {self._next}")
        value = self._next
        self._next -= 1
        return value

    def _on_cancel(self):
        print(f"  countdown cancelled with {self._next} left")


class Countdown(AsyncSequence):
    """Counts down from start to 1, announcing each element and any cancellation"""

    def __init__(self, start):
        self.start = start

    def make_iterator(self):
        return _CountdownIterator(self.start)


async def ticker(limit=1_000_000):
    """An async source that would take a very long time to drain"""
    for i in range(limit):
        await asyncio.sleep(0)
        yield i


async def main():
    setup_logging()

    print("\n--- Demo: laziness (no work until iterated) ---")
    pipeline = (
        LazySequence(range(1, 10_000))
        .map(expensive_transform)
        .filter(lambda v: v % 2 == 0)
        .skip(3)
        .take(5)
    )
    print("Constructed pipeline. No output yet (nothing computed).")
    print("\nIterating (should compute only what's needed for 5 items):")
    t0 = perf_counter()
    out = await pipeline.to_list()
    print(f"Result: {out}")
    print(f"Time: {perf_counter() - t0:.2f}s\n")

    print("--- Demo: early exit cancels the source ---")
    with iterating(Countdown(3)) as it:
        async for value in it:
            print(f"  got {value}, breaking out")
            break
    print()

    print("--- Demo: async sources and prefix ---")
    first_squares = await LazySequence(ticker).map(lambda x: x * x).prefix_while(lambda v: v < 50).to_list()
    print(f"Squares below 50 from an unbounded ticker: {first_squares}\n")

    print("--- Demo: filter -> map -> reduce ---")
    total = await (
        LazySequence([1, 2, 3, 4, 5])
        .filter(lambda x: x > 2)
        .map(lambda x: x * 10)
        .reduce(lambda acc, x: acc + x, 0)
    )
    print(f"Total: {total}\n")

    print("--- Demo: pagination ---")
    async for page in LazySequence(range(1, 12)).paginate(4):
        print("  page:", page)


if __name__ == "__main__":
    asyncio.run(main())

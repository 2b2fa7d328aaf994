"""
Helpers around lazy sequences: logging setup, declarative pipeline building,
pagination/chunking drivers and performance measurement.
"""

import gc
import logging
import sys
import time
import tracemalloc
from typing import Any, Callable, Dict, List, Optional

from lazyseq.lazy import LazySequence, validate_page
from lazyseq.models import OperationSpec, OperationType, Settings, TerminalSpec, TerminalType

logger = logging.getLogger(__name__)


# ---------- Logging ----------

def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure root logging once; returns the package logger."""
    settings = settings or Settings.from_env()
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s',
        handlers=handlers
    )
    return logging.getLogger('lazyseq')


# ---------- Named functions for declarative pipelines ----------

def _needs_operand(name: str, operand: Optional[float]) -> float:
    if operand is None:
        raise ValueError(f"Function '{name}' requires an operand")
    return operand


def _parse_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


TRANSFORMS: Dict[str, Callable[[Optional[float]], Callable]] = {
    "identity": lambda operand: (lambda x: x),
    "square": lambda operand: (lambda x: x * x),
    "negate": lambda operand: (lambda x: -x),
    "to_string": lambda operand: str,
    "parse_int": lambda operand: _parse_int,
    "multiply": lambda operand: (lambda x, k=_needs_operand("multiply", operand): x * k),
    "add": lambda operand: (lambda x, k=_needs_operand("add", operand): x + k),
}

PREDICATES: Dict[str, Callable[[Optional[float]], Callable]] = {
    "even": lambda operand: (lambda x: x % 2 == 0),
    "odd": lambda operand: (lambda x: x % 2 == 1),
    "positive": lambda operand: (lambda x: x > 0),
    "negative": lambda operand: (lambda x: x < 0),
    "not_null": lambda operand: (lambda x: x is not None),
    "is_number": lambda operand: (lambda x: isinstance(x, (int, float)) and not isinstance(x, bool)),
    "greater_than": lambda operand: (lambda x, k=_needs_operand("greater_than", operand): x > k),
    "less_than": lambda operand: (lambda x, k=_needs_operand("less_than", operand): x < k),
    "equals": lambda operand: (lambda x, k=_needs_operand("equals", operand): x == k),
    "divisible_by": lambda operand: (lambda x, k=_needs_operand("divisible_by", operand): x % k == 0),
}

_TRANSFORM_OPERATIONS = {OperationType.MAP, OperationType.COMPACT_MAP}


def resolve_function(op: OperationSpec) -> Callable:
    """Look up the callable an operation refers to."""
    registry = TRANSFORMS if op.type in _TRANSFORM_OPERATIONS else PREDICATES
    kind = "transform" if registry is TRANSFORMS else "predicate"
    factory = registry.get(op.function)
    if factory is None:
        raise ValueError(
            f"Unknown {kind} '{op.function}' for {op.type.value}; "
            f"available: {', '.join(sorted(registry))}"
        )
    return factory(op.operand)


def build_pipeline(source, operations: List[OperationSpec]) -> LazySequence:
    """Apply declarative operations to a source, lazily."""
    lazy = LazySequence(source)
    for op in operations:
        if op.type == OperationType.MAP:
            lazy = lazy.map(resolve_function(op))
        elif op.type == OperationType.COMPACT_MAP:
            lazy = lazy.compact_map(resolve_function(op))
        elif op.type == OperationType.FILTER:
            lazy = lazy.filter(resolve_function(op))
        elif op.type == OperationType.DROP_WHILE:
            lazy = lazy.drop_while(resolve_function(op))
        elif op.type == OperationType.PREFIX_WHILE:
            lazy = lazy.prefix_while(resolve_function(op))
        elif op.type == OperationType.SKIP:
            lazy = lazy.skip(op.count)
        elif op.type == OperationType.TAKE:
            lazy = lazy.take(op.count)
        elif op.type == OperationType.CONCAT:
            lazy = lazy.concat(op.data)
        elif op.type == OperationType.BATCH:
            lazy = lazy.batch(op.size).map(list)
        elif op.type == OperationType.ENUMERATE:
            lazy = lazy.enumerate().map(list)
        else:
            raise ValueError(f"Unknown op: {op.type}")
    return lazy


async def run_terminal(lazy: LazySequence, terminal: TerminalSpec):
    if terminal.type == TerminalType.SUM:
        return await lazy.sum()
    if terminal.type == TerminalType.COUNT:
        return await lazy.count()
    if terminal.type == TerminalType.MIN:
        return await lazy.min()
    if terminal.type == TerminalType.MAX:
        return await lazy.max()
    if terminal.type == TerminalType.FIRST:
        return await lazy.first()
    if terminal.type == TerminalType.LAST:
        return await lazy.last()
    if terminal.type == TerminalType.CONTAINS:
        return await lazy.contains(terminal.value)
    raise ValueError(f"Unknown terminal: {terminal.type}")


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


async def process_lazy_operations(source_data: List[Any], operations: List[OperationSpec],
                                  terminal: Optional[TerminalSpec] = None) -> Dict[str, Any]:
    """Run a declarative pipeline to completion (or through a terminal reduction)."""
    start_time = time.perf_counter()
    operations_applied = [op.type.value for op in operations]
    lazy = build_pipeline(source_data, operations)

    if terminal is not None:
        value = await run_terminal(lazy, terminal)
        logger.info(f"Pipeline {operations_applied} -> {terminal.type.value} = {value!r}")
        return {
            "value": value,
            "operations_applied": operations_applied,
            "performance": {
                "processing_time_ms": _elapsed_ms(start_time),
                "input_size": len(source_data),
                "operation": f"lazy_chain_{terminal.type.value}",
            },
        }

    result = await lazy.to_list()
    logger.info(f"Pipeline {operations_applied} produced {len(result)} items")
    return {
        "result": result,
        "operations_applied": operations_applied,
        "performance": {
            "processing_time_ms": _elapsed_ms(start_time),
            "input_size": len(source_data),
            "output_size": len(result),
            "operation": "lazy_chain",
        },
    }


async def process_pagination(source_data: List[Any], page_number: int, page_size: int,
                             operations: Optional[List[OperationSpec]] = None) -> Dict[str, Any]:
    """One page of a pipeline's output; one extra element is pulled to detect a next page."""
    start_time = time.perf_counter()
    operations = operations or []
    lazy = build_pipeline(source_data, operations)

    validate_page(page_number, page_size)
    offset = (page_number - 1) * page_size
    window = await lazy.skip(offset).take(page_size + 1).to_list()
    page_data = window[:page_size]

    return {
        "page_data": page_data,
        "current_page": page_number,
        "page_size": page_size,
        "has_next_page": len(window) > page_size,
        "has_previous_page": page_number > 1,
        "operations_applied": [op.type.value for op in operations],
        "performance": {
            "processing_time_ms": _elapsed_ms(start_time),
            "input_size": len(source_data),
            "output_size": len(page_data),
            "operation": f"pagination_page_{page_number}_size_{page_size}",
        },
    }


async def process_chunking(source_data: List[Any], chunk_size: int, max_chunks: Optional[int] = None,
                           operations: Optional[List[OperationSpec]] = None) -> Dict[str, Any]:
    """Batch a pipeline's output into chunks, optionally stopping after max_chunks."""
    start_time = time.perf_counter()
    operations = operations or []
    chunked = build_pipeline(source_data, operations).batch(chunk_size)
    if max_chunks is not None:
        chunked = chunked.take(max_chunks)

    chunks = [list(chunk) for chunk in await chunked.to_list()]
    total_items = sum(len(chunk) for chunk in chunks)

    return {
        "chunks": chunks,
        "total_chunks": len(chunks),
        "total_items": total_items,
        "chunk_size": chunk_size,
        "max_chunks": max_chunks,
        "operations_applied": [op.type.value for op in operations],
        "performance": {
            "processing_time_ms": _elapsed_ms(start_time),
            "input_size": len(source_data),
            "output_size": total_items,
            "operation": f"chunking_size_{chunk_size}",
        },
    }


# ---------- Performance tracking ----------

_performance_metrics = {
    "operations": [],
    "total_time_ms": 0.0,
    "total_memory_mb": 0.0,
    "operation_count": 0
}


async def measure_performance(operation_name: str, coro_fn: Callable, *args, **kwargs) -> Dict[str, Any]:
    """Await coro_fn(*args, **kwargs) while tracking time and peak memory."""
    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()
    info: Dict[str, Any] = {"operation": operation_name, "timestamp": time.time()}

    try:
        result = await coro_fn(*args, **kwargs)
        info["success"] = True
        info["result_size"] = len(result) if hasattr(result, "__len__") else None
    except Exception as e:
        info["success"] = False
        info["error"] = str(e)
        logger.error(f"{operation_name} failed: {e}")
        raise
    finally:
        _, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()
        info["execution_time_ms"] = _elapsed_ms(start_time)
        info["memory_usage_mb"] = peak / 1024 / 1024

        _performance_metrics["operations"].append(info)
        _performance_metrics["total_time_ms"] += info["execution_time_ms"]
        _performance_metrics["total_memory_mb"] += info["memory_usage_mb"]
        _performance_metrics["operation_count"] += 1

    # the result stays out of the stored metrics
    return {**info, "result": result}


def get_performance_summary() -> Dict[str, Any]:
    count = _performance_metrics["operation_count"]
    return {
        "total_operations": count,
        "total_time_ms": _performance_metrics["total_time_ms"],
        "total_memory_mb": _performance_metrics["total_memory_mb"],
        "avg_time_ms": _performance_metrics["total_time_ms"] / count if count else 0.0,
        "avg_memory_mb": _performance_metrics["total_memory_mb"] / count if count else 0.0
    }


def clear_performance_metrics():
    global _performance_metrics
    _performance_metrics = {
        "operations": [],
        "total_time_ms": 0.0,
        "total_memory_mb": 0.0,
        "operation_count": 0
    }


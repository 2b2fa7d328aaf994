"""
Lazy Pipeline Service

Runs declarative lazy pipelines over JSON data.
Features:
- Composable operators (map, filter, skip, take, batch, ...)
- Terminal reductions (sum, count, min, max, first, last, contains)
- Pagination and chunking of pipeline output
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from lazyseq import __version__
from lazyseq.models import (
    ChunkResponse,
    ErrorResponse,
    HealthResponse,
    OperationType,
    PageResponse,
    PipelineRequest,
    PipelineResponse,
    Settings,
    TerminalType,
)
from lazyseq.sequences import SequenceError
from lazyseq.utils import (
    process_chunking,
    process_lazy_operations,
    process_pagination,
    setup_logging,
)

logger = logging.getLogger(__name__)

settings = Settings.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging(settings)
    logger.info(f"Lazy pipeline service {__version__} starting (log level {settings.log_level})")
    yield
    logger.info("Lazy pipeline service stopped")


app = FastAPI(
    title="Lazy Pipeline Service",
    description="Declarative lazy pipelines over asynchronous sequences",
    version=__version__,
    lifespan=lifespan
)


def _check_input_size(request: PipelineRequest):
    if len(request.data) > settings.max_input_size:
        raise HTTPException(
            status_code=413,
            detail=f"Input has {len(request.data)} items; the limit is {settings.max_input_size}"
        )


def _error_response(e: Exception) -> JSONResponse:
    logger.warning(f"Pipeline rejected: {e}")
    body = ErrorResponse(error=type(e).__name__, detail=str(e))
    return JSONResponse(status_code=400, content=body.model_dump())


@app.post("/pipeline", response_model=PipelineResponse, responses={400: {"model": ErrorResponse}})
async def run_pipeline(request: PipelineRequest):
    """
    Apply the operations to the data and return the produced elements, or the
    terminal reduction's value when one is given.
    """
    _check_input_size(request)
    try:
        result = await process_lazy_operations(request.data, request.operations, request.terminal)
    except (ValueError, TypeError, SequenceError) as e:
        return _error_response(e)
    return PipelineResponse(**result)


@app.post("/pipeline/page", response_model=PageResponse, responses={400: {"model": ErrorResponse}})
async def page_pipeline(
    request: PipelineRequest,
    page: int = Query(1, ge=1, description="1-indexed page number"),
    page_size: Optional[int] = Query(None, ge=1, description="Items per page")
):
    """Return one page of the pipeline output."""
    _check_input_size(request)
    page_size = page_size or settings.default_page_size
    if page_size > settings.max_page_size:
        raise HTTPException(status_code=400, detail=f"page_size cannot exceed {settings.max_page_size}")

    try:
        result = await process_pagination(request.data, page, page_size, request.operations)
    except (ValueError, TypeError, SequenceError) as e:
        return _error_response(e)
    return PageResponse(**result)


@app.post("/pipeline/chunks", response_model=ChunkResponse, responses={400: {"model": ErrorResponse}})
async def chunk_pipeline(
    request: PipelineRequest,
    chunk_size: int = Query(..., ge=1, description="Items per chunk"),
    max_chunks: Optional[int] = Query(None, ge=1, description="Stop after this many chunks")
):
    """Return the pipeline output grouped into chunks."""
    _check_input_size(request)
    if chunk_size > settings.max_page_size:
        raise HTTPException(status_code=400, detail=f"chunk_size cannot exceed {settings.max_page_size}")

    try:
        result = await process_chunking(request.data, chunk_size, max_chunks, request.operations)
    except (ValueError, TypeError, SequenceError) as e:
        return _error_response(e)
    return ChunkResponse(**result)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        version=__version__,
        operations=[op.value for op in OperationType],
        terminals=[t.value for t in TerminalType]
    )

"""Models for the pipeline service (settings, operations, responses)."""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseModel):
    """Runtime configuration, overridable from LAZYSEQ_* environment variables."""
    log_level: str = Field("INFO", description="Root log level")
    log_file: Optional[str] = Field(None, description="Optional log file path")
    default_page_size: int = Field(10, ge=1, description="Page size when none is given")
    max_page_size: int = Field(1000, ge=1, description="Largest accepted page/chunk size")
    max_input_size: int = Field(100_000, ge=1, description="Largest accepted input list")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Normalise and check the level name."""
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v

    @model_validator(mode="after")
    def validate_page_sizes(self):
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(f"LAZYSEQ_{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**values)


class OperationType(str, Enum):
    """Lazy operators available to declarative pipelines."""
    MAP = "map"
    COMPACT_MAP = "compact_map"
    FILTER = "filter"
    DROP_WHILE = "drop_while"
    SKIP = "skip"
    PREFIX_WHILE = "prefix_while"
    TAKE = "take"
    CONCAT = "concat"
    BATCH = "batch"
    ENUMERATE = "enumerate"


FUNCTION_OPERATIONS = {
    OperationType.MAP,
    OperationType.COMPACT_MAP,
    OperationType.FILTER,
    OperationType.DROP_WHILE,
    OperationType.PREFIX_WHILE,
}


class OperationSpec(BaseModel):
    """One step of a declarative pipeline."""
    type: OperationType = Field(..., description="Operator to apply")
    function: Optional[str] = Field(
        None,
        description="Registered transform/predicate name (map, filter, ...)"
    )
    operand: Optional[float] = Field(
        None,
        description="Argument for parameterised functions such as multiply or greater_than"
    )
    count: Optional[int] = Field(None, ge=0, description="Element count for skip/take")
    size: Optional[int] = Field(None, ge=1, description="Batch size")
    data: Optional[List[Any]] = Field(None, description="Elements appended by concat")

    @model_validator(mode="after")
    def validate_arguments(self):
        """Each operator needs its own argument."""
        if self.type in FUNCTION_OPERATIONS and not self.function:
            raise ValueError(f"'{self.type.value}' requires a function name")
        if self.type in (OperationType.SKIP, OperationType.TAKE) and self.count is None:
            raise ValueError(f"'{self.type.value}' requires count")
        if self.type == OperationType.BATCH and self.size is None:
            raise ValueError("'batch' requires size")
        if self.type == OperationType.CONCAT and self.data is None:
            raise ValueError("'concat' requires data")
        return self


class TerminalType(str, Enum):
    """Reductions that end a pipeline with a single value."""
    SUM = "sum"
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    FIRST = "first"
    LAST = "last"
    CONTAINS = "contains"


class TerminalSpec(BaseModel):
    type: TerminalType
    value: Optional[Any] = Field(None, description="Value looked up by contains")


class PipelineRequest(BaseModel):
    """Input data plus the operators to run over it."""
    data: List[Any] = Field(..., description="Source elements")
    operations: List[OperationSpec] = Field(default_factory=list)
    terminal: Optional[TerminalSpec] = Field(
        None,
        description="Optional reduction; without it the produced elements are returned"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "data": [1, 2, 3, 4, 5],
                "operations": [
                    {"type": "filter", "function": "greater_than", "operand": 2},
                    {"type": "map", "function": "multiply", "operand": 10},
                ],
                "terminal": {"type": "sum"},
            }
        }
    )


class PerformanceInfo(BaseModel):
    processing_time_ms: float = Field(..., ge=0)
    input_size: int = Field(..., ge=0)
    output_size: Optional[int] = Field(None, ge=0)
    operation: str


class PipelineResponse(BaseModel):
    """Elements (or terminal value) produced by a pipeline."""
    ok: bool = True
    result: Optional[List[Any]] = None
    value: Optional[Any] = None
    operations_applied: List[str] = Field(default_factory=list)
    performance: PerformanceInfo


class PageResponse(BaseModel):
    page_data: List[Any]
    current_page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    has_next_page: bool
    has_previous_page: bool
    operations_applied: List[str] = Field(default_factory=list)
    performance: PerformanceInfo


class ChunkResponse(BaseModel):
    chunks: List[List[Any]]
    total_chunks: int = Field(..., ge=0)
    total_items: int = Field(..., ge=0)
    chunk_size: int = Field(..., ge=1)
    max_chunks: Optional[int] = None
    operations_applied: List[str] = Field(default_factory=list)
    performance: PerformanceInfo


class ErrorResponse(BaseModel):
    """Error payload returned for rejected pipelines."""
    ok: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    operations: List[str]
    terminals: List[str]

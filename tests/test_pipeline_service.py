"""
Pipeline service tests: HTTP endpoints, declarative pipeline helpers and settings.
"""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

import lazyseq.app as service
import lazyseq.utils as utils
from lazyseq.app import app
from lazyseq.lazy import LazySequence
from lazyseq.models import OperationSpec, Settings, TerminalSpec
from lazyseq.utils import (
    build_pipeline,
    clear_performance_metrics,
    get_performance_summary,
    measure_performance,
    process_chunking,
    process_lazy_operations,
    process_pagination,
)


class TestPipelineEndpoints:

    def test_filter_map_sum(self):
        with TestClient(app) as client:
            response = client.post("/pipeline", json={
                "data": [1, 2, 3, 4, 5],
                "operations": [
                    {"type": "filter", "function": "greater_than", "operand": 2},
                    {"type": "map", "function": "multiply", "operand": 10},
                ],
                "terminal": {"type": "sum"},
            })

            assert response.status_code == 200
            body = response.json()
            assert body["ok"] is True
            assert body["value"] == 120
            assert body["operations_applied"] == ["filter", "map"]
            assert body["performance"]["input_size"] == 5

    def test_returns_elements_without_terminal(self):
        with TestClient(app) as client:
            response = client.post("/pipeline", json={
                "data": ["1", "x", "3", None],
                "operations": [
                    {"type": "compact_map", "function": "parse_int"},
                    {"type": "concat", "data": [7]},
                    {"type": "enumerate"},
                ],
            })

            assert response.status_code == 200
            assert response.json()["result"] == [[0, 1], [1, 3], [2, 7]]

    def test_contains_terminal(self):
        with TestClient(app) as client:
            response = client.post("/pipeline", json={
                "data": [1, 2, 3],
                "terminal": {"type": "contains", "value": 2},
            })
            assert response.json()["value"] is True

    def test_unknown_function_is_rejected(self):
        with TestClient(app) as client:
            response = client.post("/pipeline", json={
                "data": [1, 2, 3],
                "operations": [{"type": "map", "function": "cube"}],
            })

            assert response.status_code == 400
            body = response.json()
            assert body["ok"] is False
            assert body["error"] == "ValueError"
            assert "cube" in body["detail"]

    def test_type_errors_inside_the_pipeline(self):
        with TestClient(app) as client:
            response = client.post("/pipeline", json={
                "data": ["a", "b"],
                "operations": [{"type": "filter", "function": "greater_than", "operand": 1}],
            })
            assert response.status_code == 400
            assert response.json()["error"] == "TypeError"

    def test_missing_arguments_fail_validation(self):
        with TestClient(app) as client:
            response = client.post("/pipeline", json={
                "data": [1],
                "operations": [{"type": "take"}],
            })
            assert response.status_code == 422

    def test_input_size_limit(self, monkeypatch):
        monkeypatch.setattr(service.settings, "max_input_size", 3)
        with TestClient(app) as client:
            response = client.post("/pipeline", json={"data": [1, 2, 3, 4]})
            assert response.status_code == 413

    def test_page(self):
        with TestClient(app) as client:
            payload = {"data": list(range(1, 21))}
            response = client.post("/pipeline/page?page=2&page_size=5", json=payload)
            assert response.status_code == 200
            body = response.json()
            assert body["page_data"] == [6, 7, 8, 9, 10]
            assert body["has_next_page"] is True
            assert body["has_previous_page"] is True

            last = client.post("/pipeline/page?page=4&page_size=5", json=payload).json()
            assert last["page_data"] == [16, 17, 18, 19, 20]
            assert last["has_next_page"] is False

    def test_page_uses_default_size(self):
        with TestClient(app) as client:
            response = client.post("/pipeline/page", json={"data": list(range(30))})
            assert response.json()["page_data"] == list(range(service.settings.default_page_size))

    def test_chunks(self):
        with TestClient(app) as client:
            response = client.post(
                "/pipeline/chunks?chunk_size=3&max_chunks=2",
                json={"data": list(range(10)), "operations": [{"type": "map", "function": "square"}]},
            )
            assert response.status_code == 200
            body = response.json()
            assert body["chunks"] == [[0, 1, 4], [9, 16, 25]]
            assert body["total_items"] == 6
            assert body["total_chunks"] == 2

    def test_invalid_chunk_size(self):
        with TestClient(app) as client:
            response = client.post("/pipeline/chunks?chunk_size=0", json={"data": [1]})
            assert response.status_code == 422

    def test_health(self):
        with TestClient(app) as client:
            body = client.get("/health").json()
            assert body["status"] == "healthy"
            assert "prefix_while" in body["operations"]
            assert "min" in body["terminals"]


class TestPipelineHelpers:

    def test_build_pipeline_is_lazy(self):
        ops = [OperationSpec(type="map", function="square")]
        assert isinstance(build_pipeline([1, 2], ops), LazySequence)

    def test_operand_required(self):
        with pytest.raises(ValueError, match="operand"):
            build_pipeline([1], [OperationSpec(type="map", function="multiply")])

    @pytest.mark.asyncio
    async def test_process_lazy_operations(self):
        ops = [
            OperationSpec(type="drop_while", function="less_than", operand=3),
            OperationSpec(type="prefix_while", function="less_than", operand=6),
        ]
        result = await process_lazy_operations(list(range(10)), ops)
        assert result["result"] == [3, 4, 5]
        assert result["performance"]["output_size"] == 3

    @pytest.mark.asyncio
    async def test_process_lazy_operations_terminal(self):
        result = await process_lazy_operations([4, 8, 1], [], TerminalSpec(type="min"))
        assert result["value"] == 1

    @pytest.mark.asyncio
    async def test_pagination_next_page_is_exact(self):
        result = await process_pagination(list(range(10)), 2, 5)
        assert result["page_data"] == [5, 6, 7, 8, 9]
        assert result["has_next_page"] is False

    @pytest.mark.asyncio
    async def test_pagination_rejects_page_zero(self):
        with pytest.raises(ValueError):
            await process_pagination(list(range(10)), 0, 5)

    @pytest.mark.asyncio
    async def test_chunking_with_batches(self):
        ops = [OperationSpec(type="filter", function="odd")]
        result = await process_chunking(list(range(10)), 2, operations=ops)
        assert result["chunks"] == [[1, 3], [5, 7], [9]]

    @pytest.mark.asyncio
    async def test_chunking_zero_max_chunks(self):
        """max_chunks=0 is a limit of zero chunks, not 'no limit'"""
        result = await process_chunking(list(range(10)), 3, max_chunks=0)
        assert result["chunks"] == []
        assert result["total_items"] == 0

    @pytest.mark.asyncio
    async def test_measure_performance(self):
        clear_performance_metrics()
        info = await measure_performance("count", LazySequence(range(100)).count)
        assert info["success"] is True
        assert info["result"] == 100
        assert info["execution_time_ms"] >= 0

        summary = get_performance_summary()
        assert summary["total_operations"] == 1

    @pytest.mark.asyncio
    async def test_measure_performance_does_not_retain_results(self):
        clear_performance_metrics()
        info = await measure_performance("to_list", LazySequence(range(1000)).to_list)
        assert len(info["result"]) == 1000

        stored = utils._performance_metrics["operations"][-1]
        assert "result" not in stored
        assert stored["result_size"] == 1000

    @pytest.mark.asyncio
    async def test_measure_performance_records_failures(self):
        clear_performance_metrics()

        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await measure_performance("broken", broken)
        assert get_performance_summary()["total_operations"] == 1


class TestSettings:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.log_level == "INFO"
        assert settings.log_file is None
        assert settings.default_page_size == 10

    def test_environment_overrides(self):
        settings = Settings.from_env({
            "LAZYSEQ_LOG_LEVEL": "debug",
            "LAZYSEQ_MAX_PAGE_SIZE": "50",
            "LAZYSEQ_LOG_FILE": "",
        })
        assert settings.log_level == "DEBUG"
        assert settings.max_page_size == 50
        assert settings.log_file is None

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            Settings.from_env({"LAZYSEQ_LOG_LEVEL": "chatty"})
        with pytest.raises(ValidationError):
            Settings(default_page_size=20, max_page_size=10)

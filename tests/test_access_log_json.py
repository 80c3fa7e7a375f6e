import asyncio
import logging
from typing import List

from aiohttp.test_utils import TestClient, TestServer

from modules.common import runtime as rt
from shared.logging.structured import JsonFormatter


class _Collector(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.INFO)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - trivial
        self.records.append(record)


def _fetch(*paths: str) -> tuple[list[logging.LogRecord], list[tuple[int, str | None]]]:
    async def runner():
        app = await rt.create_app()
        access_logger = logging.getLogger("aiohttp.access")
        collector = _Collector()
        access_logger.addHandler(collector)
        responses = []
        try:
            async with TestServer(app) as server:
                async with TestClient(server) as client:
                    for path in paths:
                        response = await client.get(path)
                        responses.append((response.status, response.headers.get("X-Trace-Id")))
            return list(collector.records), responses
        finally:
            access_logger.removeHandler(collector)

    return asyncio.run(runner())


def test_access_log_json_contains_fields():
    records, responses = _fetch("/healthz")

    status, trace_header = responses[0]
    assert status == 200
    assert trace_header

    http_records = [record for record in records if record.getMessage() == "http_request"]
    assert http_records, "expected middleware http_request log"

    record = http_records[-1]
    assert record.name == "aiohttp.access"
    assert record.method == "GET"
    assert record.path == "/healthz"
    assert record.status == 200
    assert record.trace == trace_header
    assert hasattr(record, "ms")

    access_logger = logging.getLogger("aiohttp.access")
    assert not access_logger.propagate
    for handler in access_logger.handlers:
        assert isinstance(handler.formatter, JsonFormatter)


def test_each_request_gets_its_own_trace():
    records, responses = _fetch("/intake/stats", "/")

    assert [status for status, _ in responses] == [503, 200]
    traces = {trace for _, trace in responses}
    assert len(traces) == 2
    logged = [(record.path, record.status) for record in records if record.getMessage() == "http_request"]
    assert logged == [("/intake/stats", 503), ("/", 200)]

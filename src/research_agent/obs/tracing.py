"""Per-turn tracing and aggregate metrics."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from research_agent.types import ToolTrace


@dataclass(slots=True)
class TurnRecord:
    trace_id: str
    timestamp_utc: str
    session_key: str
    question: str
    answer: str
    tool_traces: list[ToolTrace]
    iterations: int
    latency_ms: float


class TraceStore:
    """In-memory turn trace storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TurnRecord] = {}
        self._max_records = max_records
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        session_key: str,
        question: str,
        answer: str,
        tool_traces: list[ToolTrace],
        iterations: int,
        latency_ms: float,
    ) -> TurnRecord:
        record = TurnRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            session_key=session_key,
            question=question,
            answer=answer,
            tool_traces=tool_traces,
            iterations=iterations,
            latency_ms=latency_ms,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self._max_records:
                del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> TurnRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TurnRecord]:
        if limit < 1:
            return []
        with self._lock:
            return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate core observability metrics for dashboard display."""
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_turns": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "avg_iterations": 0.0,
                "total_tool_calls": 0,
                "failed_tool_calls": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        tool_traces = [trace for record in records for trace in record.tool_traces]

        return {
            "total_turns": total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "avg_iterations": sum(record.iterations for record in records) / total,
            "total_tool_calls": len(tool_traces),
            "failed_tool_calls": sum(1 for trace in tool_traces if trace.is_error),
        }


class Timer:
    """Simple context timer used by the agent loop."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0

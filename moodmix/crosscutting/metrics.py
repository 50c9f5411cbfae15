from datetime import datetime
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict, field
from contextlib import contextmanager
import threading


@dataclass
class BatchMetrics:
    """Metrics for a single fan-out pass."""
    batch_id: str
    call_count: int
    fulfilled_count: int
    rejected_count: int
    item_count: int
    duration_ms: int
    start_time: datetime
    end_time: Optional[datetime] = None


@dataclass
class GenerationMetrics:
    """Aggregated metrics for one generation request."""
    generation_id: str
    total_calls: int = 0
    total_fulfilled: int = 0
    total_rejected: int = 0
    total_items: int = 0
    total_duration_ms: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    batches: List[BatchMetrics] = field(default_factory=list)

    @property
    def overall_rejected_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.total_rejected / self.total_calls


class MetricsCollector:
    """Collects fan-out metrics for a generation."""

    def __init__(self, generation_id: str):
        self.generation_id = generation_id
        self.metrics = GenerationMetrics(generation_id=generation_id, start_time=datetime.now())
        self._lock = threading.Lock()
        self._current_batch: Optional[BatchMetrics] = None

    def start_batch(self, batch_id: str) -> None:
        with self._lock:
            self._current_batch = BatchMetrics(
                batch_id=batch_id,
                call_count=0,
                fulfilled_count=0,
                rejected_count=0,
                item_count=0,
                duration_ms=0,
                start_time=datetime.now()
            )

    def end_batch(self) -> None:
        with self._lock:
            batch = self._current_batch
            if not batch:
                return
            batch.end_time = datetime.now()
            batch.duration_ms = int((batch.end_time - batch.start_time).total_seconds() * 1000)

            self.metrics.batches.append(batch)
            self.metrics.total_calls += batch.call_count
            self.metrics.total_fulfilled += batch.fulfilled_count
            self.metrics.total_rejected += batch.rejected_count
            self.metrics.total_items += batch.item_count
            self._current_batch = None

    def record_fulfilled(self, item_count: int) -> None:
        with self._lock:
            if self._current_batch:
                self._current_batch.call_count += 1
                self._current_batch.fulfilled_count += 1
                self._current_batch.item_count += item_count

    def record_rejected(self) -> None:
        with self._lock:
            if self._current_batch:
                self._current_batch.call_count += 1
                self._current_batch.rejected_count += 1

    @contextmanager
    def batch_context(self, batch_id: str):
        """Context manager for one fan-out pass."""
        self.start_batch(batch_id)
        try:
            yield self
        finally:
            self.end_batch()

    def finish(self) -> GenerationMetrics:
        with self._lock:
            self.metrics.end_time = datetime.now()
            self.metrics.total_duration_ms = int(
                (self.metrics.end_time - self.metrics.start_time).total_seconds() * 1000
            )
            return self.metrics

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        with self._lock:
            data = asdict(self.metrics)
        for key in ('start_time', 'end_time'):
            if data[key]:
                data[key] = data[key].isoformat()
        for batch in data['batches']:
            for key in ('start_time', 'end_time'):
                if batch[key]:
                    batch[key] = batch[key].isoformat()
        return data

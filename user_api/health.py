"""
Health reporting with tracing.

`check_health` opens a "Health Check" span, probes each configured
dependency under its own child span and returns a `HealthSnapshot`.
Dependency failures are reported inside the snapshot, not raised.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

import psutil
from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

from user_api.dependencies import Dependency
from user_api.tracing import clean_attributes, span_context

STATUS_OK = "ok"
STATUS_ERROR = "error"

_MB = 1024 * 1024


def to_megabytes(num_bytes: int) -> int:
    """Whole megabytes, rounding halves up."""
    return int(max(num_bytes, 0) / _MB + 0.5)


@dataclass(frozen=True)
class ComponentStatus:
    status: str
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {"status": self.status}
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class MemoryUsage:
    """Process memory in whole megabytes."""

    rss: int
    heap_total: int
    heap_used: int

    @classmethod
    def from_bytes(cls, rss: int, heap_total: int, heap_used: int) -> "MemoryUsage":
        return cls(
            rss=to_megabytes(rss),
            heap_total=to_megabytes(heap_total),
            heap_used=to_megabytes(heap_used),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "rss": f"{self.rss} MB",
            "heapTotal": f"{self.heap_total} MB",
            "heapUsed": f"{self.heap_used} MB",
        }


@dataclass(frozen=True)
class HealthSnapshot:
    status: str
    timestamp: datetime
    uptime: float
    memory: MemoryUsage
    components: Mapping[str, ComponentStatus] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> dict:
        """The JSON body served by the health endpoint."""
        timestamp = self.timestamp.astimezone(timezone.utc)
        return {
            "status": self.status,
            "timestamp": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "uptime": self.uptime,
            "components": {name: c.to_dict() for name, c in self.components.items()},
            "memory": self.memory.to_dict(),
        }


def process_uptime() -> float:
    """Seconds since this process was started."""
    return max(time.time() - psutil.Process().create_time(), 0.0)


def read_memory_usage() -> MemoryUsage:
    info = psutil.Process().memory_info()
    # Private resident memory where the platform reports shared pages
    heap_used = info.rss - getattr(info, "shared", 0)
    return MemoryUsage.from_bytes(rss=info.rss, heap_total=info.vms, heap_used=heap_used)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def _check_component(
    tracer: trace.Tracer,
    name: str,
    dependency: Dependency,
    parent: Span,
) -> ComponentStatus:
    span = tracer.start_span(dependency.span_name, context=span_context(parent))
    try:
        span.set_attributes(clean_attributes({
            "health.component": name,
            "health.dependency.kind": dependency.kind.value,
        }))
        await dependency.probe()
        span.set_status(Status(StatusCode.OK))
        return ComponentStatus(STATUS_OK)
    except Exception as e:
        span.set_status(Status(StatusCode.ERROR, str(e)))
        span.record_exception(e)
        return ComponentStatus(STATUS_ERROR, str(e))
    finally:
        span.end()


async def check_health(
    tracer: trace.Tracer,
    components: Optional[Mapping[str, Dependency]] = None,
    *,
    parent: Optional[Span] = None,
    memory_probe: Callable[[], MemoryUsage] = read_memory_usage,
    uptime_probe: Callable[[], float] = process_uptime,
    clock: Callable[[], datetime] = utc_now,
) -> HealthSnapshot:
    """
    Build a health snapshot of the process and its dependencies.

    Args:
        tracer: Tracer from the telemetry pipeline.
        components: Component name -> dependency to probe.
        parent: Span to nest the "Health Check" span under; root when None.
        memory_probe, uptime_probe, clock: Sources for the process figures.

    Returns:
        The snapshot. Its status is "error" if any component failed.

    Raises:
        Anything raised while assembling the snapshot itself (not by a
        dependency probe); it is recorded on the "Health Check" span first.
    """
    span = tracer.start_span("Health Check", context=span_context(parent))
    try:
        status = STATUS_OK
        timestamp = clock()
        uptime = uptime_probe()
        results: Dict[str, ComponentStatus] = {}

        for name, dependency in (components or {}).items():
            result = await _check_component(tracer, name, dependency, span)
            if result.status == STATUS_ERROR:
                status = STATUS_ERROR
            results[name] = result

        memory = memory_probe()

        span.set_attributes(clean_attributes({
            "health.status": status,
            "health.uptime": uptime,
        }))

        return HealthSnapshot(
            status=status,
            timestamp=timestamp,
            uptime=uptime,
            memory=memory,
            components=MappingProxyType(results),
        )
    except Exception as e:
        span.record_exception(e)
        span.set_status(Status(StatusCode.ERROR, str(e)))
        raise
    finally:
        span.end()

from typing import Awaitable, Callable, Dict, Mapping, Optional, TypeVar

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span, Status, StatusCode
from opentelemetry.util.types import AttributeValue

T = TypeVar("T")

Attributes = Mapping[str, Optional[AttributeValue]]


def clean_attributes(attributes: Optional[Attributes]) -> Dict[str, AttributeValue]:
    """Drop entries whose value is None."""
    if not attributes:
        return {}
    return {key: value for key, value in attributes.items() if value is not None}


def span_context(parent: Optional[Span]) -> Context:
    """Context that makes `parent` the parent of a new span (root when None)."""
    if parent is None:
        return Context()
    return trace.set_span_in_context(parent, Context())


async def run_in_span(
    tracer: trace.Tracer,
    name: str,
    work: Callable[[Span], Awaitable[T]],
    attributes: Optional[Attributes] = None,
    *,
    parent: Optional[Span] = None,
) -> T:
    """
    Run `work` inside a span called `name`.

    `work` is called with the span so that anything it starts can name it as
    parent. On success the span status is OK and the result is returned
    unchanged; on failure the exception is recorded, the status set to ERROR
    with the exception message, and the exception re-raised. The span is
    ended exactly once either way.
    """
    span = tracer.start_span(name, context=span_context(parent))
    try:
        span.set_attributes(clean_attributes(attributes))
        result = await work(span)
    except Exception as e:
        span.record_exception(e)
        span.set_status(Status(StatusCode.ERROR, str(e)))
        raise
    else:
        span.set_status(Status(StatusCode.OK))
        return result
    finally:
        span.end()

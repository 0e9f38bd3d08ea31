import json
import os
from datetime import datetime, timezone
from typing import Optional, Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from opentelemetry.trace import StatusCode
from rich.console import Console
from rich.syntax import Syntax

from user_api.log import console as default_console


def _safe_serialize(obj):
    """Convert values that json cannot encode into strings."""
    try:
        json.dumps(obj)
        return obj
    except TypeError:
        if isinstance(obj, dict):
            return {str(k): _safe_serialize(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple, set)):
            return [_safe_serialize(v) for v in obj]
        else:
            return str(obj)


def _ns_to_iso(ns: Optional[int]) -> str:
    if ns is None:
        return "-"
    ts = datetime.fromtimestamp(ns / 1e9, tz=timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConsoleActivityExporter(SpanExporter):
    """
    Synchronous, human-readable span exporter for local debugging:
    - one prefix line per span: level, end time, name, duration
    - attributes (and the error description) as highlighted JSON
    - optionally appends the plain-text entry to a file
    """

    def __init__(self, console: Optional[Console] = None, filepath: Optional[str] = None):
        self.console = console or default_console
        self.filepath = filepath
        if filepath:
            os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)

    def format_span(self, span: ReadableSpan) -> tuple[str, str]:
        is_error = span.status.status_code is StatusCode.ERROR
        level = "ERROR" if is_error else "INFO"

        duration_ms = 0.0
        if span.start_time is not None and span.end_time is not None:
            duration_ms = (span.end_time - span.start_time) / 1e6

        prefix = f"[{level}] {_ns_to_iso(span.end_time)} {span.name} ({duration_ms:.2f} ms)"

        data = {"attributes": _safe_serialize(dict(span.attributes or {}))}
        if is_error:
            data["error"] = span.status.description
        body = json.dumps(data, indent=2, ensure_ascii=False)
        return prefix, body

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        log_lines = []
        for span in spans:
            prefix, body = self.format_span(span)
            self.console.print(prefix, markup=False, highlight=False)
            self.console.print(Syntax(body, "json", theme="ansi_dark", word_wrap=True))
            log_lines.append(f"{prefix}\n{body}\n")

        if self.filepath and log_lines:
            with open(self.filepath, "a", encoding="utf-8") as f:
                for line in log_lines:
                    f.write(line + "\n")

        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        pass

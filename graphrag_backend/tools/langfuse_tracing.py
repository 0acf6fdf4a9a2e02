"""Langfuse tracing for HTTP requests, agent nodes and graph tool calls.

Tracing is enabled only when ``LANGFUSE_PUBLIC_KEY``, ``LANGFUSE_SECRET_KEY``
and ``LANGFUSE_HOST`` are all set; otherwise every helper here is a no-op.

Three levels are recorded:
1) one trace per request, opened in :mod:`graphrag_backend.main`
2) one span per agent node (``start_span`` / ``end_span``)
3) one span per graph tool call, via the ``traced_tool`` decorator

The active trace and span live in context variables, so a tool called from
an agent node nests under that node's span.  Every SDK call goes through
``_guarded``: a broken tracing backend is logged and never fails the graph
operation being traced.
"""

from __future__ import annotations

import functools
import logging
import os
from contextvars import ContextVar
from typing import Any, Callable, Optional, TypeVar, cast

from langfuse import Langfuse

_T = TypeVar("_T")

logger = logging.getLogger("graphrag_backend.langfuse")

_client: Optional[Langfuse] = None

_current_trace: ContextVar[Optional[Any]] = ContextVar("langfuse_current_trace", default=None)
_current_span: ContextVar[Optional[Any]] = ContextVar("langfuse_current_span", default=None)


def _enabled() -> bool:
    return all(
        os.getenv(var)
        for var in ("LANGFUSE_PUBLIC_KEY", "LANGFUSE_SECRET_KEY", "LANGFUSE_HOST")
    )


def _guarded(what: str, fn: Callable[..., _T], *args: Any, **kwargs: Any) -> Optional[_T]:
    """Call into the SDK; log and return ``None`` on failure."""
    try:
        return fn(*args, **kwargs)
    except Exception:
        logger.exception(f"Langfuse: {what} failed")
        return None


def get_langfuse() -> Optional[Langfuse]:
    """Return the shared Langfuse client, or ``None`` when tracing is off."""
    global _client
    if _client is None and _enabled():
        _client = _guarded(
            "client initialisation",
            Langfuse,
            public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            host=os.getenv("LANGFUSE_HOST"),
        )
    return _client


def start_trace(
    *,
    name: str,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    input: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[Any]:
    """Open a trace and make it the parent of subsequent spans."""
    client = get_langfuse()
    if client is None:
        return None
    trace = _guarded(
        f"trace '{name}'",
        client.trace,
        name=name,
        user_id=user_id,
        session_id=session_id,
        input=input,
        metadata=metadata,
    )
    if trace is not None:
        _current_trace.set(trace)
        _current_span.set(None)
    return trace


def get_current_trace() -> Optional[Any]:
    return _current_trace.get()


def start_span(
    *,
    name: str,
    input: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[Any]:
    """Open a span under the current span (or trace) and make it current."""
    trace = get_current_trace()
    if trace is None:
        return None
    parent = _current_span.get() or trace
    span = _guarded(f"span '{name}'", parent.span, name=name, input=input, metadata=metadata)
    if span is not None:
        _current_span.set(span)
    return span


def _close(observation: Any, output: Optional[Any], error: Optional[str]) -> None:
    if error:
        _guarded("error update", observation.update, level="ERROR", status_message=error)
    if output is not None:
        _guarded("output update", observation.update, output=output)


def end_span(span: Optional[Any], *, output: Optional[Any] = None, error: Optional[str] = None) -> None:
    if span is None:
        return
    _close(span, output, error)
    _guarded("ending span", span.end)
    _current_span.set(None)


def end_trace(trace: Optional[Any], *, output: Optional[Any] = None, error: Optional[str] = None) -> None:
    if trace is None:
        return
    _close(trace, output, error)
    # SDK v2 trace clients have no end(); flushing sends them.
    client = get_langfuse()
    if client is not None:
        _guarded("flush", client.flush)
    _current_trace.set(None)
    _current_span.set(None)


def _failure_message(out: Any) -> Optional[str]:
    """The message of a ``{"success": False, ...}`` tool result, else ``None``."""
    if isinstance(out, dict) and out.get("success") is False:
        return str(out.get("message") or out.get("error") or "tool reported failure")
    return None


def traced_tool(
    name: Optional[str] = None,
    *,
    capture_input: bool = True,
    capture_output: bool = True,
) -> Callable[[Callable[..., _T]], Callable[..., _T]]:
    """Record each call of a graph tool as a ``tool:<name>`` span.

    The span carries the target namespace as metadata.  Results shaped
    ``{"success": False, ...}`` are recorded at error level even though the
    tool returned normally.

    Usage:
        @traced_tool("graph.query")
        def query_graph(...):
            ...
    """

    def deco(fn: Callable[..., _T]) -> Callable[..., _T]:
        tool_name = name or fn.__name__

        @functools.wraps(fn)
        def wrapped(*args: Any, **kwargs: Any) -> _T:
            span = start_span(
                name=f"tool:{tool_name}",
                input={"args": args, "kwargs": kwargs} if capture_input else None,
                metadata={
                    "kind": "tool",
                    "tool_name": tool_name,
                    "namespace": kwargs.get("namespace"),
                },
            )
            try:
                out = fn(*args, **kwargs)
            except Exception as e:
                end_span(span, error=str(e))
                raise
            end_span(span, output=out if capture_output else None, error=_failure_message(out))
            return out

        return cast(Callable[..., _T], wrapped)

    return deco

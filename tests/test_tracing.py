from graphrag_backend.tools import langfuse_tracing
from graphrag_backend.tools.langfuse_tracing import end_trace, start_span, traced_tool


class FakeSpan:
    def __init__(self, name, fail_on_end=False):
        self.name = name
        self.updates = []
        self.ended = False
        self.fail_on_end = fail_on_end

    def update(self, **kwargs):
        self.updates.append(kwargs)

    def end(self):
        if self.fail_on_end:
            raise RuntimeError("sink unavailable")
        self.ended = True


class FakeTrace:
    def __init__(self, fail=False, fail_on_end=False):
        self.spans = []
        self.fail = fail
        self.fail_on_end = fail_on_end

    def span(self, name, input=None, metadata=None):
        if self.fail:
            raise RuntimeError("sink unavailable")
        span = FakeSpan(name, self.fail_on_end)
        self.spans.append(span)
        return span


def test_disabled_without_env():
    assert start_span(name="x") is None


def test_structured_failure_marks_span_as_error():
    trace = FakeTrace()
    token = langfuse_tracing._current_trace.set(trace)
    try:

        @traced_tool("graph.edit")
        def edit():
            return {"success": False, "message": "Node a does not exist"}

        assert edit()["success"] is False
    finally:
        langfuse_tracing._current_trace.reset(token)

    [span] = trace.spans
    assert span.name == "tool:graph.edit"
    assert {"level": "ERROR", "status_message": "Node a does not exist"} in span.updates
    assert span.ended


def test_tracing_errors_never_break_the_tool():
    for trace in (FakeTrace(fail=True), FakeTrace(fail_on_end=True)):
        token = langfuse_tracing._current_trace.set(trace)
        try:

            @traced_tool()
            def answer():
                return {"documents": [], "count": 0}

            assert answer() == {"documents": [], "count": 0}
        finally:
            langfuse_tracing._current_trace.reset(token)


def test_end_trace_without_client_is_noop():
    end_trace(None, output={"ok": True})

"""
FastAPI server exposing the graph tools and the LangGraph agent workflow.

Endpoints:

- ``GET /`` describes the API.
- ``GET /tools`` lists every tool with its id, description and JSON input
  schema, so an agent framework can register them.
- ``POST /tools/{tool_id}`` validates the JSON body against the tool's input
  model and runs it.  Unknown tools return 404 and invalid payloads 422; tool
  failures are reported inside the 200 response (``success: false`` for
  mutations, an empty result for queries).
- ``GET /stream`` runs the agent graph once for ``message`` and streams
  state updates as Server-Sent Events.

Start the server with ``uvicorn graphrag_backend.main:app --reload``.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterator, Optional

from fastapi import Body, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse

from .agents import _compiled_agent_graph as agent_graph
from .agents import AgentState

from .tools.langfuse_tracing import start_trace, end_trace
from .tools.registry import ToolInputError, UnknownToolError, invoke_tool, list_tools

import logging


app = FastAPI(title="GraphRAG Tools Backend")

# Configure a simple application-wide logger.  The log level can be set via
# the LOG_LEVEL environment variable (default: INFO).  Logs are emitted to
# standard output, which can be captured by the hosting environment.
_log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=_log_level,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger("graphrag_backend.main")


@app.get("/tools")
async def tools() -> JSONResponse:
    """Return the registered tools and their input schemas."""
    return JSONResponse({"tools": list_tools()})


@app.post("/tools/{tool_id}")
def run_tool(tool_id: str, payload: Optional[Dict[str, Any]] = Body(None)) -> JSONResponse:
    """Run one tool with the JSON body as its input."""
    trace = start_trace(
        name=f"/tools/{tool_id}",
        input=payload,
        metadata={"endpoint": "/tools", "tool": tool_id},
    )
    logger.info(f"Received tool request: {tool_id}")
    try:
        result = invoke_tool(tool_id, payload)
    except UnknownToolError:
        end_trace(trace, error=f"unknown tool {tool_id}")
        return JSONResponse({"detail": f"Unknown tool '{tool_id}'"}, status_code=404)
    except ToolInputError as e:
        end_trace(trace, error=str(e))
        return JSONResponse({"detail": jsonable_encoder(e.errors)}, status_code=422)
    except Exception as e:
        end_trace(trace, error=str(e))
        raise
    end_trace(trace, output=result)
    return JSONResponse(jsonable_encoder(result))


@app.get("/stream")
async def stream(message: str, namespace: Optional[str] = None) -> StreamingResponse:
    """Stream graph updates as Server-Sent Events for a given user message.

    Clients should open an EventSource on this endpoint and supply a
    ``message`` query parameter, plus ``namespace`` to target a graph other
    than the default one.  Each event is prepended with ``data:`` as required
    by the SSE specification.
    """

    # Start a Langfuse trace (optional) so all LLM/tool spans are linked.
    trace = start_trace(
        name="/stream",
        input={"message": message, "namespace": namespace},
        metadata={"endpoint": "/stream"},
    )

    initial_state: AgentState = {"input": message, "output": ""}
    if namespace:
        initial_state["namespace"] = namespace

    logger.info(f"Received stream request: {message}")

    def generate_events() -> Iterator[str]:
        try:
            last_chunk = None
            for chunk in agent_graph.stream(initial_state, stream_mode="updates"):
                last_chunk = chunk
                logger.info(f"Graph update: {chunk}")
                # Each ``chunk`` is a dict keyed by node name with updated values.
                yield f"data: {json.dumps(jsonable_encoder(chunk))}\n\n"
            end_trace(trace, output={"last_chunk": last_chunk})
        except Exception as e:
            end_trace(trace, error=str(e))
            raise

    return StreamingResponse(generate_events(), media_type="text/event-stream")


@app.get("/")
async def root() -> JSONResponse:
    """Return a brief description of the API."""
    return JSONResponse(
        {
            "message": "GraphRAG tools backend is running. List tools under /tools, call them with POST /tools/{id}, and use /stream?message=... for the agent.",
        }
    )

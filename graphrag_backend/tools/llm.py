"""
Chat model access for the agent layer.

The graph tools never need a language model.  The agents use one, when
configured, to route a message and to phrase an answer from retrieved
passages; without one they fall back to keyword routing and return the
ranked passages as-is.

Models come from the environment: Azure OpenAI when ``AZURE_OPENAI_API_KEY``,
``AZURE_OPENAI_API_BASE``, ``AZURE_OPENAI_API_VERSION`` and a deployment
name are set, else ``ChatOpenAI`` when ``OPENAI_API_KEY`` is set.  Which
model an agent uses, and its system prompt, come from the agent's block in
the YAML config (see :mod:`graphrag_backend.config`).
"""

from __future__ import annotations

import os
import logging
from typing import Any, Optional, Dict

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from ..config import get_agent_settings

logger = logging.getLogger("graphrag_backend.llm")

_cached_llms: Dict[str, Any] = {}


def _azure_llm(deployment: Optional[str]) -> Optional[Any]:
    api_key = os.getenv("AZURE_OPENAI_API_KEY")
    endpoint = os.getenv("AZURE_OPENAI_API_BASE")
    api_version = os.getenv("AZURE_OPENAI_API_VERSION")
    deployment = deployment or os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
    if not (api_key and endpoint and api_version and deployment):
        return None
    logger.info(f"Initialising Azure OpenAI model (deployment={deployment})")
    return AzureChatOpenAI(
        azure_endpoint=endpoint,
        azure_deployment=deployment,
        api_version=api_version,
        api_key=api_key,
        temperature=0,
    )


def _openai_llm(model_name: Optional[str]) -> Optional[Any]:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    kwargs: Dict[str, Any] = {"api_key": api_key, "temperature": 0}
    if model_name:
        kwargs["model"] = model_name
    logger.info(f"Initialising OpenAI model ({model_name or 'default'})")
    return ChatOpenAI(**kwargs)


def get_llm(model_name: Optional[str] = None) -> Any:
    """Return a cached chat model, or ``None`` when no credentials are set."""
    key = model_name or "__default__"
    if key in _cached_llms:
        return _cached_llms[key]

    llm = _azure_llm(model_name) or _openai_llm(model_name)
    if llm is None:
        logger.debug("No OpenAI credentials found; language model features disabled")
        return None
    _cached_llms[key] = llm
    return llm


def agent_llm(agent_name: str) -> Any:
    """The chat model configured for ``agent_name``, or ``None``."""
    return get_llm(get_agent_settings(agent_name).model_name)


def ask_llm(
    prompt: str,
    *,
    model_name: Optional[str] = None,
    system_prompt: Optional[str] = None,
) -> str:
    """Send one prompt and return the text of the reply.

    Raises:
        RuntimeError: If no model is configured.  Errors from the model call
            are logged and re-raised.
    """
    llm = get_llm(model_name)
    if llm is None:
        raise RuntimeError(
            "No language model configured.  Set the appropriate environment variables."
        )
    messages: list = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    messages.append(HumanMessage(content=prompt))
    logger.info(f"LLM request (model={model_name}): {prompt}")
    try:
        response = llm.invoke(messages)
    except Exception:
        logger.exception("Error during LLM request")
        raise
    answer = response.content if hasattr(response, "content") else str(response)
    logger.info(f"LLM response: {answer}")
    return answer


def ask_agent(agent_name: str, prompt: str) -> str:
    """:func:`ask_llm` with the model and system prompt configured for ``agent_name``."""
    settings = get_agent_settings(agent_name)
    return ask_llm(prompt, model_name=settings.model_name, system_prompt=settings.system_prompt)


__all__ = ["agent_llm", "ask_agent", "ask_llm", "get_llm"]

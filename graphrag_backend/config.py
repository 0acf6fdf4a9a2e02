"""Configuration loader.

Graph engine defaults, embedding settings and per-agent model settings live in
``graphrag_backend/graphrag_config.yaml``.  Set ``GRAPHRAG_CONFIG_PATH`` to
point at another file.

The loader is intentionally small and tolerant:
- If the YAML file is missing or invalid, it falls back to built-in defaults.
- Individual keys with the wrong type are ignored.

The YAML schema:

- graph_rag:
    default_namespace, similarity_threshold, initial_document_count,
    max_hop_count, min_similarity, low_score_edge_threshold,
    default_edge_weight, best_score_wins, max_batch_size,
    embedding_provider, embedding_model, embedding_dimensions, loader_dir
- default_model: <string | null>
- supervisor/graph_rag_agent:
    system_prompt: <string | null>
    model_name: <string | null>
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from typing import Any, Optional

import yaml

logger = logging.getLogger("graphrag_backend.config")


@dataclass(frozen=True)
class GraphRagSettings:
    default_namespace: str = "default"
    similarity_threshold: float = 0.7
    initial_document_count: int = 3
    max_hop_count: int = 2
    min_similarity: float = 0.6
    low_score_edge_threshold: float = 0.2
    default_edge_weight: float = 0.5
    best_score_wins: bool = False
    max_batch_size: int = 500
    embedding_provider: str = "hashing"
    embedding_model: Optional[str] = None
    embedding_dimensions: int = 1024
    loader_dir: str = "graph_files"


@dataclass(frozen=True)
class AgentSettings:
    model_name: Optional[str]
    system_prompt: Optional[str]


def _default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "graphrag_config.yaml")


@lru_cache(maxsize=1)
def load_config(path: Optional[str] = None) -> dict[str, Any]:
    config_path = path or os.getenv("GRAPHRAG_CONFIG_PATH") or _default_config_path()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data
    except FileNotFoundError:
        return {}
    except Exception:
        # Keep this loader non-fatal; failures should not crash the server.
        logger.exception(f"Failed to read config file {config_path}")
        return {}


def _coerce(value: Any, default: Any) -> Any:
    """Return ``value`` if it matches the type of ``default``, else ``default``."""
    if default is None:
        return value if isinstance(value, str) else None
    if isinstance(default, bool):
        return value if isinstance(value, bool) else default
    if isinstance(default, int):
        return value if isinstance(value, int) and not isinstance(value, bool) else default
    if isinstance(default, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return default
    if isinstance(default, str):
        return value if isinstance(value, str) and value else default
    return default


def get_graph_rag_settings(config: Optional[dict[str, Any]] = None) -> GraphRagSettings:
    config = load_config() if config is None else config
    block = config.get("graph_rag", {}) if isinstance(config, dict) else {}
    if not isinstance(block, dict):
        block = {}

    defaults = GraphRagSettings()
    values = {}
    for f in fields(GraphRagSettings):
        default = getattr(defaults, f.name)
        if f.name in block:
            values[f.name] = _coerce(block[f.name], default)
        else:
            values[f.name] = default
    return GraphRagSettings(**values)


def get_agent_settings(agent_name: str) -> AgentSettings:
    config = load_config()
    default_model = config.get("default_model")

    agent_block = config.get(agent_name, {}) if isinstance(config, dict) else {}
    if not isinstance(agent_block, dict):
        agent_block = {}

    model_name = agent_block.get("model_name")
    if model_name is None:
        model_name = default_model

    system_prompt = agent_block.get("system_prompt")

    return AgentSettings(
        model_name=model_name if isinstance(model_name, str) else None,
        system_prompt=system_prompt if isinstance(system_prompt, str) else None,
    )


__all__ = [
    "AgentSettings",
    "GraphRagSettings",
    "get_agent_settings",
    "get_graph_rag_settings",
    "load_config",
]

"""
Input models for the graph tools.

Field aliases keep the camelCase names agents send on the wire
(``similarityThreshold``, ``nodeIds`` ...); Python callers may use either form.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class DocumentInput(ToolInput):
    content: str
    metadata: Optional[Dict[str, Any]] = None


class EdgeRef(ToolInput):
    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")


class CreateGraphInput(ToolInput):
    documents: List[DocumentInput] = Field(description="Documents to process and connect")
    namespace: Optional[str] = Field(None, description="Namespace to store the graph in")
    similarity_threshold: Optional[float] = Field(
        None,
        alias="similarityThreshold",
        ge=0.0,
        le=1.0,
        description="Threshold for creating connections (0-1, default 0.7)",
    )


class QueryGraphInput(ToolInput):
    query: str = Field(description="Query to search for in the document graph")
    namespace: Optional[str] = Field(None, description="Namespace for the graph")
    initial_document_count: Optional[int] = Field(
        None,
        alias="initialDocumentCount",
        ge=1,
        description="Initial number of documents to retrieve (default 3)",
    )
    max_hop_count: Optional[int] = Field(
        None,
        alias="maxHopCount",
        ge=0,
        description="Maximum number of hops to traverse in the graph (default 2)",
    )
    min_similarity: Optional[float] = Field(
        None,
        alias="minSimilarity",
        description="Minimum similarity for initial document retrieval (default 0.6)",
    )


class TraceGraphQueryInput(QueryGraphInput):
    pass


class VisualizeGraphInput(ToolInput):
    namespace: Optional[str] = None
    format: Literal["json", "dot", "gexf"] = "json"


class InspectGraphInput(ToolInput):
    node_ids: List[str] = Field(alias="nodeIds")
    namespace: Optional[str] = None


class EditGraphInput(ToolInput):
    action: Literal["addNode", "removeNode", "addEdge", "removeEdge", "updateWeight"]
    node: Optional[Dict[str, Any]] = None
    edge: Optional[EdgeRef] = None
    weight: Optional[float] = None
    namespace: Optional[str] = None


class PruneGraphInput(ToolInput):
    mode: Literal["pruneOrphans", "mergeDuplicates", "removeLowScoreEdges"]
    threshold: Optional[float] = None
    namespace: Optional[str] = None


class ExportImportGraphInput(ToolInput):
    direction: Literal["export", "import"]
    format: Literal["json", "csv", "graphml"] = "json"
    data: Optional[Any] = None
    namespace: Optional[str] = None


class LoadGraphFileInput(ToolInput):
    file_path: str = Field(alias="filePath")
    format: Optional[Literal["csv", "dot", "gexf", "graphml", "json"]] = None
    namespace: Optional[str] = None


class SaveGraphFileInput(LoadGraphFileInput):
    pass

"""Pydantic models for knowledge base records.

KnowledgeChunk is written by the ingestion pipeline; KnowledgeMatch is what the
vector similarity procedure returns to the retrieval strategy.
"""

from pydantic import BaseModel


class KnowledgeMetadata(BaseModel):
    source: str
    uploaded_by: str | None = None


class KnowledgeChunk(BaseModel):
    """One embedded slice of an uploaded document.

    The embedding dimensionality must match the embedding model used at query
    time. Chunks produced with another model are not comparable.
    """

    content: str
    embedding: list[float]
    metadata: KnowledgeMetadata


class KnowledgeMatch(BaseModel):
    """A nearest-neighbour hit, ordered by similarity (highest first)."""

    id: int | str | None = None
    content: str
    metadata: dict = {}
    similarity: float

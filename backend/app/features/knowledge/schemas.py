from typing import Literal, Optional

from pydantic import BaseModel, Field

ContentType = Literal["policy", "concept"]


class Chunk(BaseModel):
    """A bounded, categorized segment of an ingested document (pre-embedding)."""
    content: str
    course_id: str
    page_number: Optional[int] = None
    week_number: Optional[int] = None
    topic: Optional[str] = None
    content_type: ContentType
    metadata: dict = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """A stored chunk returned by similarity search, with its cosine score."""
    id: str
    content: str
    course_id: str
    page_number: Optional[int] = None
    week_number: Optional[int] = None
    topic: Optional[str] = None
    content_type: ContentType
    metadata: dict = Field(default_factory=dict)
    score: float


class IngestionResult(BaseModel):
    course_id: str
    filename: str
    pages: int
    chunks_created: int
    policy_chunks: int
    concept_chunks: int


class UploadResponse(BaseModel):
    success: bool = True
    result: IngestionResult

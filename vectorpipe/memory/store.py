# vectorpipe/memory/store.py

"""
Document index boundary.

The index itself (storage, sharding, mappings, ranking) lives outside this
package. Only the shape it is called with is defined here.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from vectorpipe.memory.vector import Vector


DEFAULT_KEYWORD_WEIGHT = 1.0
DEFAULT_VECTOR_WEIGHT = 2.0
DEFAULT_PAGE_SIZE = 10


class SearchType(str, Enum):
    KEYWORD = "KEYWORD"
    VECTOR = "VECTOR"
    HYBRID = "HYBRID"


class SearchRequest(BaseModel):
    """Query sent to the index."""

    index_name: str = Field(..., min_length=1)
    query: str = ""
    vector: Optional[List[float]] = None
    search_type: SearchType = SearchType.HYBRID
    keyword_weight: float = DEFAULT_KEYWORD_WEIGHT
    vector_weight: float = DEFAULT_VECTOR_WEIGHT
    filter_tags: List[str] = Field(default_factory=list)
    page: int = Field(0, ge=0)
    size: int = Field(DEFAULT_PAGE_SIZE, gt=0)


class SearchHit(BaseModel):
    document_id: str
    text: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    """Ranked page of hits plus the total match count."""

    hits: List[SearchHit] = Field(default_factory=list)
    total: int = 0


@runtime_checkable
class DocumentIndex(Protocol):

    def index_document(
        self,
        document_id: str,
        vector: Vector,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    def search(self, request: SearchRequest) -> SearchResponse:
        ...

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


_HEX16 = re.compile(r"^[0-9a-fA-F]{16}$")


class RecordKind(str, Enum):
    BOOKMARK = "bookmark"
    NOTE = "note"


class Record(BaseModel):
    """A bookmark or note as handed over by the storage layer.

    Records are immutable input. ``tags`` behaves as a set: duplicates are
    dropped on construction but first-seen order is kept so that every
    derived structure iterates deterministically.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: int = 0
    description: Optional[str] = None
    kind: RecordKind = RecordKind.BOOKMARK
    link_health: Optional[Literal["alive", "dead", "unknown", "checking"]] = None
    content: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _unique_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        seen: Dict[str, None] = {}
        for tag in value:
            seen.setdefault(str(tag), None)
        return list(seen)


class Fingerprint(BaseModel):
    """64-bit SimHash stored as two unsigned 32-bit words."""
    model_config = ConfigDict(frozen=True)

    high: int = Field(default=0, ge=0, le=0xFFFFFFFF)
    low: int = Field(default=0, ge=0, le=0xFFFFFFFF)

    @property
    def value(self) -> int:
        return (self.high << 32) | self.low

    @property
    def is_zero(self) -> bool:
        return self.high == 0 and self.low == 0

    def to_hex(self) -> str:
        return f"{self.high:08x}{self.low:08x}"

    @classmethod
    def from_hex(cls, text: str) -> "Fingerprint":
        # Anything that is not exactly 16 hex chars means "no similarity data".
        if not isinstance(text, str) or not _HEX16.match(text):
            return cls()
        return cls(high=int(text[:8], 16), low=int(text[8:], 16))

    @classmethod
    def from_int(cls, value: int) -> "Fingerprint":
        value &= 0xFFFFFFFFFFFFFFFF
        return cls(high=value >> 32, low=value & 0xFFFFFFFF)


@dataclass(frozen=True)
class SimilarPair:
    i: int
    j: int
    similarity: int


class TagSuggestion(BaseModel):
    tag: str
    confidence: int
    source_count: int


class DuplicateReason(str, Enum):
    """Which stage of the duplicate pipeline produced a group.

    Values:
        EXACT_URL: Members share the same normalized URL.
        SIMILAR_URL: Members live on the same domain and have near-identical
            URLs or titles (edit distance).
        SIMILAR_TITLE: Members have close content fingerprints.
    """
    EXACT_URL = "exact_url"
    SIMILAR_URL = "similar_url"
    SIMILAR_TITLE = "similar_title"


class DuplicateGroup(BaseModel):
    id: str
    member_ids: List[str]
    similarity: int = Field(ge=0, le=100)
    reason: DuplicateReason

    @property
    def size(self) -> int:
        return len(self.member_ids)


class DeduplicationResult(BaseModel):
    groups: List[DuplicateGroup] = Field(default_factory=list)
    total_duplicates: int = 0
    potential_savings: int = 0


class MergePlan(BaseModel):
    """Payload for the merge collaborator: keep one record, delete the rest."""
    group_id: str
    keep_id: str
    delete_ids: List[str]


class CleanupRecommendation(BaseModel):
    duplicates: DeduplicationResult
    stale_records: List[Record] = Field(default_factory=list)
    broken_links: List[Record] = Field(default_factory=list)
    total_cleanup_potential: int = 0


class NodeKind(str, Enum):
    RECORD = "record"
    TAG = "tag"
    SOURCE = "source"


class EdgeKind(str, Enum):
    SAME_SOURCE = "same_source"
    HAS_TAG = "has_tag"
    TAG_COOCCURRENCE = "tag_cooccurrence"
    CONTENT_SIMILARITY = "content_similarity"


class GraphNode(BaseModel):
    id: str
    kind: NodeKind
    label: str
    size: float = 8.0
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None


class GraphEdge(BaseModel):
    source: str
    target: str
    weight: float = Field(default=1.0, gt=0)
    kind: EdgeKind


class KnowledgeGraph(BaseModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class PipelineState(BaseModel):
    """The 'Source of Truth' passing between steps and modules."""
    records: List[Record] = Field(default_factory=list)
    fingerprints: Dict[str, str] = Field(default_factory=dict)

    duplicates: Optional[DeduplicationResult] = None
    merge_plans: List[MergePlan] = Field(default_factory=list)
    cleanup: Optional[CleanupRecommendation] = None

    graph: Optional[KnowledgeGraph] = None
    orphans: List[str] = Field(default_factory=list)
    bridges: List[str] = Field(default_factory=list)

    generated_at: Optional[str] = None
    execution_log: List[Dict[str, Any]] = Field(default_factory=list)

    # ---  Track recursion depth for pretty printing ---
    depth: int = 0

    def to_json(self):
        return self.model_dump()

"""Core memory data structures."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from companion.core.profiles import ProjectContext, UserPreferences


class Priority(Enum):
    """Todo priority tier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def glyph(self) -> str:
        """Marker used in the Markdown checklist."""
        return {"high": "!", "medium": "?", "low": ""}[self.value]


class EntryType(Enum):
    """Kind of record fragment an index entry points at."""
    CONVERSATION = "conversation"
    DECISION = "decision"
    PROBLEM = "problem"
    TODO = "todo"


@dataclass
class DecisionRecord:
    """A decision taken during a conversation."""

    decision_point: str
    decision: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision_point": self.decision_point,
            "decision": self.decision,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecisionRecord":
        return cls(
            decision_point=data["decision_point"],
            decision=data["decision"],
            reason=data.get("reason", ""),
        )


@dataclass
class ProblemSolution:
    """A problem encountered and how it was resolved."""

    problem: str
    solution: str
    result: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "problem": self.problem,
            "solution": self.solution,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProblemSolution":
        return cls(
            problem=data["problem"],
            solution=data["solution"],
            result=data.get("result", ""),
        )


@dataclass
class TodoItem:
    """A follow-up task attached to a conversation."""

    id: str
    task: str
    completed: bool = False
    priority: Priority = Priority.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "task": self.task,
            "completed": self.completed,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TodoItem":
        return cls(
            id=data["id"],
            task=data["task"],
            completed=data.get("completed", False),
            priority=Priority(data.get("priority", "medium")),
        )


@dataclass
class Technology:
    """A technology referenced in a conversation."""

    name: str
    purpose: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "purpose": self.purpose}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Technology":
        return cls(name=data["name"], purpose=data.get("purpose", ""))


@dataclass
class ConversationMetadata:
    """Header fields of a conversation record."""

    conversation_id: str
    title: str
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None  # None while the conversation is open
    user_name: str = ""
    project: str = ""
    summary: str = ""

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "title": self.title,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "user_name": self.user_name,
            "project": self.project,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMetadata":
        end_time = data.get("end_time")
        return cls(
            conversation_id=data["conversation_id"],
            title=data.get("title", ""),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(end_time) if end_time else None,
            user_name=data.get("user_name", ""),
            project=data.get("project", ""),
            summary=data.get("summary", ""),
        )


@dataclass
class ConversationRecord:
    """One tracked interaction with its decisions, solutions and todos."""

    metadata: ConversationMetadata
    summary: str = ""
    decisions: List[DecisionRecord] = field(default_factory=list)
    problems: List[ProblemSolution] = field(default_factory=list)
    technologies: List[Technology] = field(default_factory=list)
    key_code: List[str] = field(default_factory=list)
    todos: List[TodoItem] = field(default_factory=list)
    user_feedback: Optional[str] = None
    # Not traversed by retrieval yet
    related_memories: List[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.metadata.conversation_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "metadata": self.metadata.to_dict(),
            "summary": self.summary,
            "decisions": [d.to_dict() for d in self.decisions],
            "problems": [p.to_dict() for p in self.problems],
            "technical_details": {
                "technologies": [t.to_dict() for t in self.technologies],
                "key_code": self.key_code,
            },
            "todos": [t.to_dict() for t in self.todos],
            "user_feedback": self.user_feedback,
            "related_memories": self.related_memories,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationRecord":
        """Reconstruct from dictionary."""
        technical = data.get("technical_details", {})
        return cls(
            metadata=ConversationMetadata.from_dict(data["metadata"]),
            summary=data.get("summary", ""),
            decisions=[DecisionRecord.from_dict(d) for d in data.get("decisions", [])],
            problems=[ProblemSolution.from_dict(p) for p in data.get("problems", [])],
            technologies=[Technology.from_dict(t) for t in technical.get("technologies", [])],
            key_code=technical.get("key_code", []),
            todos=[TodoItem.from_dict(t) for t in data.get("todos", [])],
            user_feedback=data.get("user_feedback"),
            related_memories=data.get("related_memories", []),
        )


@dataclass
class IndexEntry:
    """Denormalized, searchable projection of part of a conversation."""

    id: str
    type: EntryType
    keywords: List[str]
    timestamp: datetime
    conversation_id: str
    relevance_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "keywords": self.keywords,
            "timestamp": self.timestamp.isoformat(),
            "conversationId": self.conversation_id,
            "relevanceScore": self.relevance_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexEntry":
        return cls(
            id=data["id"],
            type=EntryType(data["type"]),
            keywords=list(data.get("keywords", [])),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            conversation_id=data["conversationId"],
            relevance_score=float(data["relevanceScore"]),
        )


@dataclass
class IndexStats:
    """Size of the keyword index."""

    keyword_count: int = 0
    total_entry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword_count": self.keyword_count,
            "total_entry_count": self.total_entry_count,
        }


@dataclass
class MemoryManifest:
    """Top-level bookkeeping file of a memory store."""

    version: str
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)
    total_conversations: int = 0
    total_memories: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at.isoformat(),
            "lastUpdated": self.last_updated.isoformat(),
            "totalConversations": self.total_conversations,
            "totalMemories": self.total_memories,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryManifest":
        return cls(
            version=data["version"],
            created_at=datetime.fromisoformat(data["createdAt"]),
            last_updated=datetime.fromisoformat(data["lastUpdated"]),
            total_conversations=data.get("totalConversations", 0),
            total_memories=data.get("totalMemories", 0),
        )


@dataclass
class MemoryRetrievalResult:
    """Conversations (plus loaded profiles) relevant to a query."""

    conversations: List[ConversationRecord] = field(default_factory=list)
    user_preferences: Optional["UserPreferences"] = None
    project_context: Optional["ProjectContext"] = None
    relevance_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversations": [c.to_dict() for c in self.conversations],
            "user_preferences": (
                self.user_preferences.model_dump(mode="json") if self.user_preferences else None
            ),
            "project_context": (
                self.project_context.model_dump(mode="json") if self.project_context else None
            ),
            "relevance_score": self.relevance_score,
        }

"""Typed models used by the study material generator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

OP_ANALYZE = "analyze"
OP_FLASHCARDS = "flashcard-batch"
OP_MCQS = "mcq-batch"

TIER_DIRECT = "direct"
TIER_REPAIRED = "repaired"
TIER_EXTRACTED = "extracted"
TIER_FAILED = "failed"

JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

MCQ_OPTIONS = ("A", "B", "C", "D")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CourseData:
    subject: str
    outline: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CourseData":
        data = data or {}
        outline = data.get("outline") or []
        if isinstance(outline, str):
            outline = [outline]
        return cls(
            subject=str(data.get("subject") or ""),
            outline=tuple(str(point) for point in outline),
        )


@dataclass(frozen=True)
class GenerationRequest:
    operation: str
    transcript: str
    language: str = "en"
    course: CourseData = CourseData(subject="")
    count: int = 0
    difficulty: int = 3
    existing: Tuple[Dict[str, Any], ...] = ()


@dataclass
class Flashcard:
    question: str
    answer: str

    def to_dict(self) -> Dict[str, str]:
        return {"question": self.question, "answer": self.answer}


@dataclass
class MCQ:
    question: str
    A: str
    B: str
    C: str
    D: str
    correct: str
    userSelection: Optional[str] = None
    isCorrect: Optional[bool] = None

    def grade(self, selection: str) -> "MCQ":
        self.userSelection = selection
        self.isCorrect = selection == self.correct
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "question": self.question,
            "A": self.A,
            "B": self.B,
            "C": self.C,
            "D": self.D,
            "correct": self.correct,
        }
        if self.userSelection is not None:
            data["userSelection"] = self.userSelection
            data["isCorrect"] = self.isCorrect
        return data


@dataclass
class RecoveryResult:
    tier: str
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.tier != TIER_FAILED


@dataclass
class BatchState:
    target_count: int
    chunk_size: int
    completed_items: List[Dict[str, Any]] = field(default_factory=list)
    batches_attempted: int = 0
    batches_succeeded: int = 0

    @property
    def remaining(self) -> int:
        return self.target_count - len(self.completed_items)

    @property
    def total_batches(self) -> int:
        if self.chunk_size <= 0:
            return 0
        return -(-self.target_count // self.chunk_size)


@dataclass
class Job:
    id: str
    status: str
    progress: int = 0
    result: Optional[str] = None
    error: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "status": self.status,
            "progress": self.progress,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            status=data["status"],
            progress=int(data.get("progress", 0)),
            result=data.get("result"),
            error=data.get("error"),
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
        )

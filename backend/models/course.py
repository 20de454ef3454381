"""Course data models."""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass
class Course:
    """A course row owned by the database; read-only from the chat service."""
    title: str
    url: str
    course_id: Optional[str] = None
    description: str = ""
    price: Optional[str] = None
    duration: Optional[str] = None
    domain: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Course":
        """Build a Course from a Supabase row or RPC result."""
        # Table and RPC rows carry "id"; stored snapshots from to_dict() carry "course_id"
        course_id = row.get("id")
        if course_id is None:
            course_id = row.get("course_id")
        price = row.get("price")
        duration = row.get("duration")
        return cls(
            title=(row.get("title") or "").strip(),
            url=(row.get("url") or "").strip(),
            course_id=str(course_id) if course_id is not None else None,
            description=row.get("description") or row.get("content") or "",
            price=str(price) if price not in (None, "") else None,
            duration=str(duration) if duration not in (None, "") else None,
            domain=row.get("domain"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScoredCourse:
    """Course with similarity score from retrieval."""
    course: Course
    similarity: float  # 0.0 to 1.0

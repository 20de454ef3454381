"""Data models for the Easy-T support assistant."""
from .course import Course, ScoredCourse
from .conversation import Session, Turn, USER, ASSISTANT
from .activity import ActivityRecord
from .api import ChatRequest, ChatResponse, ClickEvent

__all__ = [
    "Course",
    "ScoredCourse",
    "Session",
    "Turn",
    "USER",
    "ASSISTANT",
    "ActivityRecord",
    "ChatRequest",
    "ChatResponse",
    "ClickEvent",
]

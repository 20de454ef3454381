"""Activity feed data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ActivityRecord:
    """One purchase/enrollment event shown in the public activity feed."""
    name: str
    product: str
    event_type: str
    occurred_at: datetime
    dedup_key: Optional[str] = None

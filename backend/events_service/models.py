"""
Event record as read from the events table.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class Event:
    id: str
    title: str
    description: Optional[str]
    start_time: datetime
    end_time: datetime
    location: str
    organizer_id: str
    created_at: Optional[datetime] = None

    @property
    def owner_id(self) -> str:
        return self.organizer_id

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Event":
        return cls(
            id=str(row["event_id"]),
            title=row["title"],
            description=row.get("description"),
            start_time=row["start_time"],
            end_time=row["end_time"],
            location=row["location"],
            organizer_id=str(row["organizer_id"]),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "location": self.location,
            "organizer_id": self.organizer_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ON_TIME_YES = "yes"
ON_TIME_NO = "no"
ON_TIME_LABELS = {ON_TIME_YES: "Да", ON_TIME_NO: "Нет"}

MAX_FEEDBACK_LENGTH = 1000


@dataclass(frozen=True)
class Workshop:
    id: int
    name: str
    address: str = ""
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "address": self.address,
            "description": self.description,
        }


@dataclass(frozen=True)
class Review:
    workshop: str
    quality_rating: int
    communication_rating: int
    on_time: str
    text_feedback: str = ""
    created_at: Optional[datetime] = None
    id: Optional[int] = None
    user_id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    username: str = ""

    @property
    def author_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def on_time_label(self) -> str:
        return ON_TIME_LABELS.get(self.on_time, self.on_time)

    def to_public_dict(self) -> dict:
        return {
            "id": str(self.id) if self.id is not None else "",
            "workshop": self.workshop,
            "quality_rating": self.quality_rating,
            "communication_rating": self.communication_rating,
            "on_time": self.on_time_label,
            "text_feedback": self.text_feedback,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class Season:
    id: int
    name: str
    start_date: datetime
    end_date: Optional[datetime] = None
    description: str = ""

    def contains(self, moment: datetime) -> bool:
        if moment < self.start_date:
            return False
        return self.end_date is None or moment <= self.end_date

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

"""Completed workout session data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SetKind(str, Enum):
    """Classification of a set."""

    NORMAL = "normal"
    WARMUP = "warmup"
    DROPSET = "dropset"

    def next(self) -> "SetKind":
        """Return the kind that follows this one when toggling."""
        order = list(SetKind)
        return order[(order.index(self) + 1) % len(order)]


class SetDetail(BaseModel):
    """One logged set of an exercise."""

    id: str = Field(..., description="Set identifier")
    weight: Optional[float] = Field(None, ge=0, description="Weight in kg")
    reps: Optional[int] = Field(None, ge=0, description="Repetitions")
    kind: SetKind = Field(default=SetKind.NORMAL)
    notes: Optional[str] = Field(None, description="Free-text note for the set")

    @field_validator("reps", mode="before")
    @classmethod
    def _reps_must_be_integral(cls, value):
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError("reps must be a whole number")
            return int(value)
        return value

    @property
    def is_populated(self) -> bool:
        return self.weight is not None or self.reps is not None or bool(self.notes)


class SessionExercise(BaseModel):
    """Exercise performed in a session with its sets."""

    id: str = Field(..., description="Exercise identifier")
    name: str = Field(..., description="Display name")
    muscle_group: Optional[str] = Field(None)
    set_details: List[SetDetail] = Field(default_factory=list)

    @property
    def has_sets(self) -> bool:
        return any(s.is_populated for s in self.set_details)


class CompletedSessionRecord(BaseModel):
    """One actual workout occurrence."""

    record_id: str = Field(..., description="Unique record ID (UUID)")
    user_id: str = Field(..., description="Owner identifier")
    plan_id: Optional[str] = Field(None, description="Originating plan, None for ad-hoc workouts")
    title: str = Field(default="Workout", description="Title snapshot")
    date: datetime = Field(default_factory=datetime.now, description="Workout date")
    start_time: Optional[datetime] = Field(None)
    end_time: Optional[datetime] = Field(None)
    notes: str = Field(default="")
    body_weight: Optional[float] = Field(None, ge=0, description="Body weight in kg")
    exercises: List[SessionExercise] = Field(default_factory=list)
    done: bool = Field(default=False, description="Was the workout finished?")
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        json_schema_extra = {
            "example": {
                "record_id": "123e4567-e89b-12d3-a456-426614174001",
                "user_id": "user@example.com",
                "plan_id": "123e4567-e89b-12d3-a456-426614174000",
                "title": "Monday - Push",
                "date": "2025-01-15T18:00:00",
                "start_time": "2025-01-15T18:00:00",
                "end_time": "2025-01-15T19:05:00",
                "exercises": [
                    {
                        "id": "chest1",
                        "name": "Barbell Bench Press",
                        "set_details": [
                            {"id": "s1", "weight": 50, "reps": 10, "kind": "warmup"},
                            {"id": "s2", "weight": 55, "reps": 8, "kind": "normal"},
                        ],
                    }
                ],
                "done": True,
            }
        }

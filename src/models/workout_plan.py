"""Workout plan template data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class WorkoutType(str, Enum):
    """Workout category: weekday split or freeform custom."""

    SPLIT = "split"
    CUSTOM = "custom"


class PlannedExercise(BaseModel):
    """Exercise inside a plan template with its target set count."""

    id: str = Field(..., description="Exercise identifier (catalog id or custom-<timestamp>)")
    name: str = Field(..., description="Display name")
    sets: int = Field(..., ge=0, description="Target number of sets")
    muscle_group: Optional[str] = Field(None, description="Muscle group tag, e.g. chest")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "chest1",
                "name": "Barbell Bench Press",
                "sets": 3,
                "muscle_group": "chest",
            }
        }


class WorkoutPlanTemplate(BaseModel):
    """Reusable workout blueprint owned by a user."""

    plan_id: str = Field(..., description="Unique plan ID (UUID)")
    user_id: str = Field(..., description="Owner identifier")
    title: str = Field(..., description="Plan title, e.g. 'Monday - Push'")
    description: Optional[str] = Field(None, description="Optional description")
    workout_type: WorkoutType = Field(default=WorkoutType.CUSTOM)
    day_of_week: Optional[str] = Field(
        None, description="Weekday for split workouts, e.g. 'Monday'"
    )
    exercises: List[PlannedExercise] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        json_schema_extra = {
            "example": {
                "plan_id": "123e4567-e89b-12d3-a456-426614174000",
                "user_id": "user@example.com",
                "title": "Monday - Push",
                "workout_type": "split",
                "day_of_week": "Monday",
                "exercises": [
                    {"id": "chest1", "name": "Barbell Bench Press", "sets": 3},
                ],
            }
        }

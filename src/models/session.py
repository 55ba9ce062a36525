"""In-memory working state of the workout screen."""

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from .workout_log import SessionExercise, SetDetail, SetKind
from .workout_plan import PlannedExercise


def new_id() -> str:
    return str(uuid.uuid4())


class WorkingSet(BaseModel):
    """Editable set row.

    ``weight``, ``reps`` and ``notes`` are what the user typed. The
    ``placeholder_*`` fields hold previous performance shown as hints only.
    """

    id: str = Field(default_factory=new_id)
    weight: Optional[float] = Field(None, ge=0)
    reps: Optional[int] = Field(None, ge=0)
    notes: str = Field(default="")
    kind: SetKind = Field(default=SetKind.NORMAL)
    placeholder_weight: Optional[float] = None
    placeholder_reps: Optional[int] = None
    placeholder_notes: Optional[str] = None

    @property
    def has_placeholder(self) -> bool:
        return (
            self.placeholder_weight is not None
            or self.placeholder_reps is not None
            or bool(self.placeholder_notes)
        )

    def to_set_detail(self) -> SetDetail:
        return SetDetail(
            id=self.id,
            weight=self.weight,
            reps=self.reps,
            kind=self.kind,
            notes=self.notes or None,
        )


class WorkingExercise(BaseModel):
    """Exercise row of the workout screen."""

    id: str
    name: str
    muscle_group: Optional[str] = None
    sets: List[WorkingSet] = Field(default_factory=list)

    def to_session_exercise(self) -> SessionExercise:
        return SessionExercise(
            id=self.id,
            name=self.name,
            muscle_group=self.muscle_group,
            set_details=[s.to_set_detail() for s in self.sets],
        )

    def to_planned_exercise(self) -> PlannedExercise:
        return PlannedExercise(
            id=self.id,
            name=self.name,
            sets=len(self.sets),
            muscle_group=self.muscle_group,
        )

    @classmethod
    def from_session_exercise(cls, exercise: SessionExercise) -> "WorkingExercise":
        """Load a logged exercise with its actual values filled in."""
        return cls(
            id=exercise.id,
            name=exercise.name,
            muscle_group=exercise.muscle_group,
            sets=[
                WorkingSet(
                    id=detail.id,
                    weight=detail.weight,
                    reps=detail.reps,
                    notes=detail.notes or "",
                    kind=detail.kind,
                )
                for detail in exercise.set_details
            ],
        )

"""Static exercise catalog grouped by muscle group."""

import re
from typing import Dict, Iterable, List, NamedTuple, Optional

DEFAULT_SET_COUNT = 3


class CatalogExercise(NamedTuple):
    id: str
    name: str
    muscle_group: str


def _group(prefix: str, muscle_group: str, names: List[str]) -> List[CatalogExercise]:
    return [
        CatalogExercise(f"{prefix}{i}", name, muscle_group)
        for i, name in enumerate(names, start=1)
    ]


EXERCISES_BY_CATEGORY: Dict[str, List[CatalogExercise]] = {
    "Chest": _group("chest", "chest", [
        "Barbell Bench Press",
        "Incline Barbell Bench Press",
        "Decline Barbell Bench Press",
        "Dumbbell Bench Press",
        "Incline Dumbbell Press",
        "Decline Dumbbell Press",
        "Dumbbell Flyes",
        "Incline Dumbbell Flyes",
        "Cable Crossover",
        "Low Cable Crossover",
        "High Cable Crossover",
        "Pec Deck Machine",
        "Push Ups",
        "Incline Push Ups",
        "Decline Push Ups",
        "Dips (Chest Version)",
        "Smith Machine Bench Press",
        "Machine Chest Press",
        "Dumbbell Pullover",
    ]),
    "Back": _group("back", "back", [
        "Pull Ups",
        "Chin Ups",
        "Lat Pulldown",
        "Wide Grip Lat Pulldown",
        "Close Grip Lat Pulldown",
        "Neutral Grip Pulldown",
        "Barbell Deadlift",
        "Romanian Deadlift",
        "Sumo Deadlift",
        "T-Bar Row",
        "Bent Over Barbell Row",
        "Seated Cable Row",
        "Single Arm Dumbbell Row",
        "Chest Supported Row",
        "Inverted Row",
        "Face Pull",
        "Straight Arm Pulldown",
        "Hyperextension",
        "Machine Row",
    ]),
    "Arms": _group("arms", "arms", [
        "Barbell Bicep Curl",
        "Dumbbell Bicep Curl",
        "Hammer Curl",
        "Preacher Curl",
        "Concentration Curl",
        "EZ Bar Curl",
        "Reverse Curl",
        "Cable Bicep Curl",
        "Close Grip Bench Press",
        "Triceps Dip",
        "Skull Crusher",
        "Triceps Rope Pushdown",
        "Overhead Triceps Extension",
        "Dumbbell Triceps Kickback",
        "Diamond Push Up",
        "Wrist Curl",
    ]),
    "Core": _group("core", "core", [
        "Plank",
        "Side Plank",
        "Russian Twist",
        "Bicycle Crunch",
        "Hanging Leg Raise",
        "Ab Wheel Rollout",
        "Cable Crunch",
        "Reverse Crunch",
        "Dead Bug",
        "Sit-Up",
        "Mountain Climber",
        "Hollow Body Hold",
        "Pallof Press",
    ]),
    "Shoulders": _group("shoulders", "shoulders", [
        "Overhead Press",
        "Dumbbell Shoulder Press",
        "Arnold Press",
        "Push Press",
        "Lateral Raise",
        "Front Raise",
        "Rear Delt Fly",
        "Upright Row",
        "Cable Lateral Raise",
        "Seated Dumbbell Press",
        "Reverse Pec Deck Fly",
        "Machine Shoulder Press",
        "Barbell Shrug",
        "Dumbbell Shrug",
    ]),
    "Legs": _group("legs", "legs", [
        "Barbell Back Squat",
        "Front Squat",
        "Bulgarian Split Squat",
        "Goblet Squat",
        "Leg Press",
        "Hack Squat",
        "Walking Lunge",
        "Reverse Lunge",
        "Step Up",
        "Leg Curl",
        "Seated Leg Curl",
        "Leg Extension",
        "Calf Raise",
        "Seated Calf Raise",
        "Hip Thrust",
        "Glute Bridge",
    ]),
}

# Keyword heuristics for names not in the catalog, checked in order. A keyword
# matches whole words only, in singular or plural form.
_KEYWORDS = (
    ("core", ("leg raise", "knee raise")),
    ("chest", ("bench", "push", "pushup", "chest", "fly", "flies", "pec")),
    ("back", ("row", "pull", "pullup", "pulldown", "chinup", "lat", "back", "deadlift")),
    ("legs", ("squat", "leg", "lunge", "calf", "calve", "glute", "hamstring", "quad")),
    ("arms", ("curl", "tricep", "bicep", "extension", "arm", "kickback")),
    ("shoulders", ("shoulder", "delt", "raise")),
    ("core", ("ab", "crunch", "twist", "plank", "core", "situp")),
)


def normalize_name(name: str) -> str:
    return name.strip().lower()


def _words(name: str) -> List[str]:
    return re.findall(r"[a-z]+", normalize_name(name))


def _has_keyword(words: List[str], keyword: str) -> bool:
    parts = keyword.split()
    for start in range(len(words) - len(parts) + 1):
        window = words[start:start + len(parts)]
        if all(word in (part, part + "s", part + "es") for word, part in zip(window, parts)):
            return True
    return False


def all_exercises() -> Iterable[CatalogExercise]:
    for exercises in EXERCISES_BY_CATEGORY.values():
        yield from exercises


def find_exercise(name: str) -> Optional[CatalogExercise]:
    """Return the catalog entry whose name matches case-insensitively."""
    key = normalize_name(name)
    for exercise in all_exercises():
        if normalize_name(exercise.name) == key:
            return exercise
    return None


def infer_muscle_group(name: str) -> str:
    """Catalog muscle group, else a guess from keywords in the name."""
    match = find_exercise(name)
    if match:
        return match.muscle_group

    words = _words(name)
    is_press = _has_keyword(words, "press")
    # A plain "press" is chest work unless it names the shoulders or legs.
    if is_press and not any(_has_keyword(words, w) for w in ("shoulder", "overhead", "military", "leg")):
        return "chest"
    for muscle_group, keywords in _KEYWORDS:
        if any(_has_keyword(words, keyword) for keyword in keywords):
            return muscle_group
    if is_press:
        return "shoulders"
    return "chest"


def is_duplicate(name: str, exercises: Iterable) -> bool:
    """True when an exercise with the same trimmed, lowercased name exists."""
    key = normalize_name(name)
    return any(normalize_name(ex.name) == key for ex in exercises)


def search(query: str, limit: int = 20) -> List[CatalogExercise]:
    key = normalize_name(query)
    if not key:
        return []
    return [ex for ex in all_exercises() if key in ex.name.lower()][:limit]

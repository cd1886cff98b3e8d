"""
Preferences

Classifier-style personalization: who the answer is for and how deep it may go.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from ..common.config import PreferencesConfig
from ..common.graph import Individual


class DifficultyLevel(str, Enum):
    """Ordered from easiest to hardest"""
    BASIC = "Basic"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"

    @property
    def rank(self) -> int:
        return list(DifficultyLevel).index(self)


def difficulty_rank(value: Optional[str]) -> int:
    """Position on the difficulty scale; -1 for unknown levels."""
    try:
        return DifficultyLevel(value).rank
    except ValueError:
        return -1


@dataclass(frozen=True)
class Preferences:
    audience: str = "Developers"
    difficulty: str = DifficultyLevel.INTERMEDIATE.value
    detailing: str = "Detailed"

    @classmethod
    def from_config(cls, config: PreferencesConfig) -> "Preferences":
        return cls(
            audience=config.audience,
            difficulty=config.difficulty,
            detailing=config.detailing,
        )


def filter_by_preferences(
    individuals: Sequence[Individual], preferences: Optional[Preferences]
) -> List[Individual]:
    """
    Drop individuals meant for another audience or above the preferred level.

    Individuals without audience and difficulty always pass.
    """
    if preferences is None or not individuals:
        return list(individuals)

    preferred_rank = difficulty_rank(preferences.difficulty)
    kept = []
    for individual in individuals:
        audience = individual.properties.get("audience")
        difficulty = individual.properties.get("difficulty")
        if not audience and not difficulty:
            kept.append(individual)
            continue
        if audience and audience != preferences.audience:
            continue
        if difficulty and difficulty_rank(difficulty) > preferred_rank:
            continue
        kept.append(individual)
    return kept

"""
Learner profile and personalized difficulty.

The profile is a small model of one reader, updated from reading sessions:

    reading_speed         words per minute (EMA, default 200)
    comprehension_level   0-1 (EMA, default 0.7)
    preferred_difficulty  1-5 (default 3)
    learning_history      bounded log of {action, word, timestamp, difficulty}
    weak_spots/strengths  stems the learner struggles with / has mastered

Personalized difficulty shifts a base tier by three offsets:

    preference    = (preferred_difficulty - 3) * 0.3
    comprehension = (comprehension_level - 0.7) * 2 * 0.2
    reading_speed = -((reading_speed - 200) / 100) * 0.1
    stars = clamp(round(base + preference + comprehension + reading_speed), 1, 5)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .frequency.analyzer import WordStat
from .frequency.scorer import NEUTRAL_TIER, clamp_tier, difficulty_label, score_to_difficulty

logger = logging.getLogger(__name__)

DEFAULT_READING_SPEED = 200.0
DEFAULT_COMPREHENSION = 0.7
DEFAULT_PREFERRED_DIFFICULTY = 3

# EMA weight of a new observation
EMA_WEIGHT = 0.2

WEAK_SPOT_BONUS = 2
STRENGTH_PENALTY = -1

# Accept the camelCase keys older clients persisted
PREFERENCE_ALIASES = {
    "readingSpeed": "reading_speed",
    "comprehensionLevel": "comprehension_level",
    "preferredDifficulty": "preferred_difficulty",
}


@dataclass
class UserProfile:
    reading_speed: float = DEFAULT_READING_SPEED
    comprehension_level: float = DEFAULT_COMPREHENSION
    preferred_difficulty: int = DEFAULT_PREFERRED_DIFFICULTY
    learning_history: List[Dict[str, Any]] = field(default_factory=list)
    weak_spots: Set[str] = field(default_factory=set)
    strengths: Set[str] = field(default_factory=set)

    def record(
        self,
        action: str,
        word: str,
        timestamp: int,
        difficulty: Optional[int],
        limit: int = 1000,
        trim_to: int = 500,
    ) -> None:
        """Append to the learning history, keeping the newest entries once over limit."""
        self.learning_history.append({
            "action": action,
            "word": word,
            "timestamp": timestamp,
            "difficulty": difficulty,
        })
        if len(self.learning_history) > limit:
            self.learning_history = self.learning_history[-trim_to:]

    def apply_session(self, words_per_minute: float, comprehension_estimate: float) -> None:
        """Blend one finished session into the moving averages."""
        if words_per_minute > 0:
            self.reading_speed = self.reading_speed * (1 - EMA_WEIGHT) + words_per_minute * EMA_WEIGHT
        self.comprehension_level = (
            self.comprehension_level * (1 - EMA_WEIGHT) + comprehension_estimate * EMA_WEIGHT
        )

    def mark(self, stem: str, status: str) -> bool:
        """Move a stem into strengths or weak_spots (the two sets stay disjoint)."""
        if status == "strength":
            self.weak_spots.discard(stem)
            self.strengths.add(stem)
        elif status == "weak":
            self.strengths.discard(stem)
            self.weak_spots.add(stem)
        else:
            return False
        return True

    def update_preference(self, key: str, value: Any) -> bool:
        """
        Set one scalar preference after validating it.

        Returns:
            False for unknown keys or out-of-range values
        """
        key = PREFERENCE_ALIASES.get(key, key)
        if isinstance(value, bool):
            return False
        try:
            if key == "preferred_difficulty":
                tier = int(value)
                if tier != value or not 1 <= tier <= 5:
                    return False
                self.preferred_difficulty = tier
            elif key == "comprehension_level":
                level = float(value)
                if not 0.0 <= level <= 1.0:
                    return False
                self.comprehension_level = level
            elif key == "reading_speed":
                speed = float(value)
                if speed <= 0:
                    return False
                self.reading_speed = speed
            else:
                return False
        except (TypeError, ValueError):
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reading_speed": self.reading_speed,
            "comprehension_level": self.comprehension_level,
            "preferred_difficulty": self.preferred_difficulty,
            "learning_history": [dict(entry) for entry in self.learning_history],
            "weak_spots": sorted(self.weak_spots),
            "strengths": sorted(self.strengths),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        """Rebuild a stored profile; missing or unusable fields keep their defaults."""
        profile = cls()
        for key, value in data.items():
            key = PREFERENCE_ALIASES.get(key, key)
            if key in ("reading_speed", "comprehension_level", "preferred_difficulty"):
                if not profile.update_preference(key, value):
                    logger.warning(f"Ignoring stored profile value {key}={value!r}")
            elif key == "learning_history" and isinstance(value, list):
                profile.learning_history = [dict(entry) for entry in value if isinstance(entry, dict)]
            elif key in ("weak_spots", "weakSpots") and isinstance(value, (list, set, tuple)):
                profile.weak_spots = {str(stem) for stem in value}
            elif key == "strengths" and isinstance(value, (list, set, tuple)):
                profile.strengths = {str(stem) for stem in value}
        return profile


class PersonalizationEngine:
    """Adapts difficulty and ranking to a learner profile."""

    def adjust_difficulty(self, base: Dict[str, Any], profile: UserProfile) -> Dict[str, Any]:
        """
        Shift a base difficulty result for this learner.

        Args:
            base: Result carrying at least "stars" (1-5)
            profile: Learner profile

        Returns:
            Copy of base with personalized stars, original_stars, adjustment,
            label and the individual offsets under "factors"
        """
        base_stars = base.get("stars", NEUTRAL_TIER)
        preference = (profile.preferred_difficulty - 3) * 0.3
        comprehension = (profile.comprehension_level - 0.7) * 2 * 0.2
        reading_speed = -((profile.reading_speed - 200) / 100) * 0.1

        stars = clamp_tier(base_stars + preference + comprehension + reading_speed)
        adjusted = dict(base)
        adjusted.update({
            "stars": stars,
            "original_stars": base_stars,
            "adjustment": stars - base_stars,
            "label": difficulty_label(stars),
            "is_personalized": True,
            "factors": {
                "preference": round(preference, 3),
                "comprehension": round(comprehension, 3),
                "reading_speed": round(reading_speed, 3),
            },
        })
        return adjusted

    def personalize_results(self, results: List[Dict[str, Any]], profile: UserProfile) -> List[Dict[str, Any]]:
        """Boost weak spots (+2), demote strengths (-1), re-sort by the adjusted relevance."""
        personalized = []
        for result in results:
            word = result.get("word")
            bonus = 0
            if word in profile.weak_spots:
                bonus = WEAK_SPOT_BONUS
            elif word in profile.strengths:
                bonus = STRENGTH_PENALTY

            entry = dict(result)
            entry["personalized_relevance"] = result.get("relevance", 0) + bonus
            if "difficulty" in result:
                entry["personalized_difficulty"] = self.adjust_difficulty(
                    {"stars": result["difficulty"]}, profile
                )["stars"]
            entry["is_personalized"] = True
            personalized.append(entry)

        personalized.sort(key=lambda r: -r["personalized_relevance"])
        return personalized

    def estimate_mastery(self, word: str, profile: UserProfile) -> float:
        if word in profile.strengths:
            mastery = 0.9
        elif word in profile.weak_spots:
            mastery = 0.2
        else:
            mastery = 0.5

        seen = sum(1 for entry in profile.learning_history if entry.get("word") == word)
        if seen > 5:
            mastery = min(0.95, mastery + 0.1)
        return mastery

    def generate_insights(self, word: str, profile: UserProfile, stat: Optional[WordStat]) -> Dict[str, Any]:
        insights = {
            "difficulty_for_user": difficulty_label(NEUTRAL_TIER),
            "recommended_action": "study",
            "mastery": None,
            "learning_tips": [],
        }
        if stat is None:
            return insights

        mastery = self.estimate_mastery(word, profile)
        tier = score_to_difficulty(stat.distribution_score)
        insights["mastery"] = mastery
        insights["difficulty_for_user"] = self.adjust_difficulty({"stars": tier}, profile)["label"]

        if mastery < 0.3:
            insights["recommended_action"] = "focus_study"
            insights["learning_tips"] = [
                "This word is hard for you, put it on your study list",
                "Try using it in a few different sentences",
            ]
        elif mastery > 0.8:
            insights["recommended_action"] = "review"
            insights["learning_tips"] = [
                "You already know this word well",
                "Look for less common ways it is used",
            ]
        else:
            insights["recommended_action"] = "practice"
            insights["learning_tips"] = ["Practice this word to make it stick"]
        return insights

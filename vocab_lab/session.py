"""
Reading session telemetry and analysis.

A session counts words read, dictionary lookups and the difficulty tier of
every known word encountered. Analysis turns those counters into pace,
lookup rate, a difficulty trend and a coarse comprehension estimate:

    lookup_rate < 0.02  -> comprehension 0.9
    lookup_rate > 0.05  -> comprehension 0.5
    otherwise           -> comprehension 0.7
    lookup_rate > 0.08  -> urgent suggestions
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .frequency.analyzer import WordStat
from .frequency.scorer import difficulty_label, score_to_difficulty

logger = logging.getLogger(__name__)

HIGH_COMPREHENSION = 0.9
DEFAULT_COMPREHENSION = 0.7
LOW_COMPREHENSION = 0.5

LOW_LOOKUP_RATE = 0.02
HIGH_LOOKUP_RATE = 0.05
URGENT_LOOKUP_RATE = 0.08

RISING_DIFFICULTY = 3.5
FALLING_DIFFICULTY = 2.5

EASIER_CONTENT = "Try slightly easier content"
HARDER_CONTENT = "You are ready for more challenging content"


@dataclass
class Session:
    """One reading session; times are epoch milliseconds."""
    start_time: int
    end_time: Optional[int] = None
    words_read: int = 0
    lookups_count: int = 0
    difficulty_encountered: List[int] = field(default_factory=list)
    analysis: Optional[Dict[str, Any]] = None

    def time_spent(self, now: Optional[int] = None) -> int:
        end = self.end_time if self.end_time is not None else now
        if end is None:
            return 0
        return max(0, end - self.start_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "words_read": self.words_read,
            "lookups_count": self.lookups_count,
            "difficulty_encountered": list(self.difficulty_encountered),
            "analysis": self.analysis,
        }


class SessionAnalyzer:
    """Stateless session and lookup analysis."""

    def analyze_session(self, session: Session, now: Optional[int] = None) -> Dict[str, Any]:
        """
        Compute metrics for a running or finished session.

        Args:
            session: Session counters
            now: Current time in ms, used while the session is still open

        Returns:
            {time_spent, words_per_minute, lookup_rate, average_difficulty,
            difficulty_trend, comprehension_estimate, recommendations, urgent}
        """
        time_spent = session.time_spent(now)
        words_per_minute = session.words_read / time_spent * 60000 if time_spent > 0 else 0.0
        lookup_rate = session.lookups_count / session.words_read if session.words_read > 0 else 0.0

        recommendations = []
        trend = "stable"
        average_difficulty = None
        if session.difficulty_encountered:
            average_difficulty = sum(session.difficulty_encountered) / len(session.difficulty_encountered)
            if average_difficulty > RISING_DIFFICULTY:
                trend = "increasing"
                recommendations.append(EASIER_CONTENT)
            elif average_difficulty < FALLING_DIFFICULTY:
                trend = "decreasing"
                recommendations.append(HARDER_CONTENT)

        if lookup_rate < LOW_LOOKUP_RATE:
            comprehension = HIGH_COMPREHENSION
        elif lookup_rate > HIGH_LOOKUP_RATE:
            comprehension = LOW_COMPREHENSION
        else:
            comprehension = DEFAULT_COMPREHENSION

        return {
            "time_spent": time_spent,
            "words_read": session.words_read,
            "lookups_count": session.lookups_count,
            "words_per_minute": words_per_minute,
            "lookup_rate": lookup_rate,
            "average_difficulty": average_difficulty,
            "difficulty_trend": trend,
            "comprehension_estimate": comprehension,
            "recommendations": recommendations,
            "urgent": lookup_rate > URGENT_LOOKUP_RATE,
        }

    def analyze_lookup(
        self,
        word: str,
        context: Optional[Dict[str, Any]],
        stem: str,
        stat: Optional[WordStat],
    ) -> Dict[str, Any]:
        analysis = {
            "word": word,
            "stem": stem,
            "difficulty": None,
            "label": "unknown",
            "should_focus": False,
            "suggestions": [],
            "learning_tip": "",
            "context": dict(context or {}),
        }
        if stat is None:
            return analysis

        tier = score_to_difficulty(stat.distribution_score)
        analysis["difficulty"] = tier
        analysis["label"] = difficulty_label(tier)
        if tier >= 4:
            analysis["should_focus"] = True
            analysis["suggestions"].append("This is a harder word, add it to your study list")
        elif tier <= 2:
            analysis["suggestions"].append("This is a common word, worth learning early")
        analysis["learning_tip"] = self.learning_tip(stat)
        return analysis

    def learning_tip(self, stat: WordStat) -> str:
        if stat.article_count > 1:
            return (
                f"Appears {stat.total_count} times across {stat.article_count} articles; "
                f"watch how \"{stat.most_common_variant}\" is used in each"
            )
        times = "once" if stat.total_count == 1 else f"{stat.total_count} times"
        return f"Appears {times} in one article; note the sentence it is used in"

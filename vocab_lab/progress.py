"""
Learning progress and predictions from archived sessions.

Trend compares mean comprehension of the last 5 sessions against the 5 before
them; projections extrapolate that difference linearly per day.
"""

import math
from typing import Any, Dict, List

from .personalization import UserProfile
from .session import DEFAULT_COMPREHENSION

RECENT_WINDOW = 5
OVERALL_WINDOW = 10
TREND_THRESHOLD = 0.05
HIGH_CONFIDENCE_CHANGE = 0.1
MIN_CONFIDENT_SESSIONS = 10
FALLBACK_GAIN = 5


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _comprehension(session: Dict[str, Any]) -> float:
    analysis = session.get("analysis") or {}
    return analysis.get("comprehension_estimate", DEFAULT_COMPREHENSION)


class LearningProgressCalculator:
    """
    Derives progress reports from session history and the learner profile.

    Sessions are archived Session.to_dict() payloads, oldest first.
    """

    def __init__(self, sessions: List[Dict[str, Any]], profile: UserProfile, difficulty_distribution: Dict[int, int]):
        self.sessions = sessions
        self.profile = profile
        self.difficulty_distribution = difficulty_distribution

    def overall(self) -> int:
        """Mean comprehension of the last 10 sessions, as a percentage."""
        if not self.sessions:
            return 0
        recent = self.sessions[-OVERALL_WINDOW:]
        return _round(sum(_comprehension(s) for s in recent) / len(recent) * 100)

    def vocabulary(self) -> Dict[str, Any]:
        total = sum(self.difficulty_distribution.values())
        known = len(self.profile.strengths)
        return {
            "known": known,
            "total": total,
            "percentage": _round(known / total * 100) if total else 0,
        }

    def trends(self) -> Dict[str, Any]:
        if len(self.sessions) < 2:
            return {"trend": "insufficient_data"}

        recent = self.sessions[-RECENT_WINDOW:]
        older = self.sessions[-2 * RECENT_WINDOW:-RECENT_WINDOW]
        recent_avg = sum(_comprehension(s) for s in recent) / len(recent)
        # With no older window, measure against the starting comprehension
        older_avg = sum(_comprehension(s) for s in older) / len(older) if older else DEFAULT_COMPREHENSION
        improvement = recent_avg - older_avg

        if improvement > TREND_THRESHOLD:
            trend = "improving"
        elif improvement < -TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "stable"
        return {"trend": trend, "improvement": improvement, "recent_performance": recent_avg}

    def predict_gain(self, days: int) -> Dict[str, Any]:
        trend = self.trends()
        if trend["trend"] == "insufficient_data":
            return {"confidence": "low", "estimated_gain": FALLBACK_GAIN}

        improvement = trend["improvement"]
        if len(self.sessions) < MIN_CONFIDENT_SESSIONS:
            confidence = "low"
        elif abs(improvement) > HIGH_CONFIDENCE_CHANGE:
            confidence = "high"
        else:
            confidence = "medium"
        return {
            "confidence": confidence,
            "estimated_gain": max(0, _round(improvement * 100 / 7 * days)),
        }

    def monthly_goal(self) -> Dict[str, Any]:
        current = self.overall()
        weekly = self.predict_gain(7)
        return {
            "current": current,
            "target": min(100, current + weekly["estimated_gain"] * 4),
            "achievable": weekly["confidence"] != "low",
        }

    def recommended_focus(self) -> List[str]:
        areas = []
        if self.profile.comprehension_level < 0.6:
            areas.append("reading comprehension")
        if self.profile.reading_speed < 150:
            areas.append("reading speed")
        if len(self.profile.weak_spots) > len(self.profile.strengths):
            areas.append("vocabulary")
        return areas or ["keep the current pace"]

    def difficulty_progression(self) -> Dict[str, Any]:
        level = self.profile.preferred_difficulty
        performance = self.overall()
        if performance > 80 and level < 5:
            return {"suggestion": "increase", "target": level + 1,
                    "reason": "Strong results, try more challenging content"}
        if performance < 60 and level > 1:
            return {"suggestion": "decrease", "target": level - 1,
                    "reason": "Consolidate the basics with slightly easier content"}
        return {"suggestion": "maintain", "target": level,
                "reason": "The current level suits you"}

    def predictions(self) -> Dict[str, Any]:
        return {
            "next_week": self.predict_gain(7),
            "next_month": self.predict_gain(30),
            "monthly_goal": self.monthly_goal(),
            "recommended_focus": self.recommended_focus(),
            "difficulty_progression": self.difficulty_progression(),
        }

    def report(self, include_predictions: bool = True) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "overall": self.overall(),
            "vocabulary": self.vocabulary(),
            "difficulty": dict(self.difficulty_distribution),
            "trends": self.trends(),
            "predictions": None,
        }
        if include_predictions:
            report["predictions"] = self.predictions()
        return report

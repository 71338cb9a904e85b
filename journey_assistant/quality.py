"""Heuristic quality scoring for analysis results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .models import AnalysisResult

ACTION_VERBS = ("clicked", "selected", "tapped", "interacted", "viewed", "joined", "created")
TYPED_PROPERTY_TOKENS = ("int", "long", "varchar", "string", "boolean", "decimal", "number")
DOMAIN_PROPERTIES = ("source", "roundId", "tourId", "contestJoinCount", "bannerId", "section")
CONTEXTUAL_PROPERTIES = ("source", "section", "screen")
USER_ID_NAMES = ("user_id", "userId")


@dataclass(slots=True)
class QualityWeights:
    base: float = 0.5
    action_naming: float = 0.15
    typed_properties: float = 0.15
    domain_properties: float = 0.10
    rich_properties: float = 0.10
    some_properties: float = 0.05
    high_confidence: float = 0.10
    moderate_confidence: float = 0.05
    essential_globals: float = 0.05
    contextual_properties: float = 0.10


@dataclass(slots=True)
class QualityAssessment:
    score: float
    feedback: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)


class QualityAssessor:
    """Scores a result against naming, typing and coverage heuristics.

    Bonuses are independent and non-negative: satisfying one more heuristic,
    all else equal, never lowers the score.
    """

    def __init__(self, weights: QualityWeights | None = None) -> None:
        self.weights = weights or QualityWeights()

    def assess(self, result: AnalysisResult) -> QualityAssessment:
        w = self.weights
        feedback: List[str] = []
        improvements: List[str] = []
        score = w.base

        names = [event.name.lower() for event in result.events]
        if any(verb in name for name in names for verb in ACTION_VERBS):
            score += w.action_naming
            feedback.append("Uses descriptive action verbs in event names")
        else:
            improvements.append("Use descriptive action words (clicked, selected, tapped) in event names")

        properties = [prop for event in result.events for prop in event.properties]
        if any(prop.type.lower() in TYPED_PROPERTY_TOKENS for prop in properties):
            score += w.typed_properties
            feedback.append("Includes concrete property types")
        else:
            improvements.append("Add property types (int, long, varchar, string, boolean, decimal)")

        if any(prop.name in DOMAIN_PROPERTIES for prop in properties):
            score += w.domain_properties
            feedback.append("Includes domain properties (source, roundId, etc.)")
        else:
            improvements.append("Include domain properties like source, roundId, tourId when relevant")

        event_count = len(result.events)
        avg_properties = len(properties) / event_count if event_count else 0.0
        if avg_properties >= 3:
            score += w.rich_properties
            feedback.append(f"Good property coverage ({avg_properties:.1f} avg per event)")
        elif avg_properties >= 1:
            score += w.some_properties
            feedback.append(f"Moderate property coverage ({avg_properties:.1f} avg per event)")
            improvements.append("Add more relevant properties to events (aim for 3+ per event)")
        else:
            improvements.append("Events need more properties; most events carry 3 or more")

        avg_confidence = sum(event.confidence for event in result.events) / event_count if event_count else 0.0
        if avg_confidence >= 0.8:
            score += w.high_confidence
            feedback.append("High confidence analysis")
        elif avg_confidence >= 0.6:
            score += w.moderate_confidence
            feedback.append("Moderate confidence analysis")
        else:
            improvements.append("Low confidence; consider providing clearer screenshots")

        global_names = {prop.name for prop in result.global_properties}
        if global_names.intersection(USER_ID_NAMES) and "timestamp" in global_names:
            score += w.essential_globals
            feedback.append("Essential global properties included")
        else:
            improvements.append("Include user_id and timestamp in global properties")

        if any(prop.name.lower() in CONTEXTUAL_PROPERTIES for prop in properties):
            score += w.contextual_properties
            feedback.append("Includes contextual properties (source, section)")
        else:
            improvements.append("Add contextual properties like source and section for better tracking")

        return QualityAssessment(score=min(1.0, round(score, 6)), feedback=feedback, improvements=improvements)

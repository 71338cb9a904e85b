"""Reporting utilities for Journey Assistant."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List

from .models import AnalysisResult
from .quality import QualityAssessment
from .repository import PatternRepository


@dataclass(slots=True)
class Report:
    title: str
    summary_lines: List[str]

    def render_text(self) -> str:
        return "\n".join([self.title, "-" * len(self.title), *self.summary_lines])


def analysis_report(result: AnalysisResult) -> Report:
    title = f"Analysis {result.analysis_id or '(unsaved)'}"
    if not result.events:
        return Report(title=title, summary_lines=["No events detected."])
    lines = [
        f"Events: {len(result.events)}",
        f"Confidence: {result.confidence:.0%}",
    ]
    for event in result.events:
        screens = ", ".join(event.sources) or "unknown screen"
        lines.append(f"- {event.name} [{event.category}] on {screens} ({event.confidence:.0%})")
        for prop in event.properties:
            marker = "*" if prop.required else " "
            lines.append(f"    {marker} {prop.name}: {prop.type} ({prop.source})")
    if result.global_properties:
        lines.append("Global properties: " + ", ".join(prop.name for prop in result.global_properties))
    for screen, props in result.carried_properties.items():
        lines.append(f"Carried into {screen}: " + ", ".join(prop.name for prop in props))
    if result.recommendations:
        lines.append("Recommendations:")
        lines.extend(f"- {item}" for item in result.recommendations)
    return Report(title=title, summary_lines=lines)


def quality_report(assessment: QualityAssessment) -> Report:
    lines = [f"Score: {assessment.score:.2f}"]
    lines.extend(f"+ {line}" for line in assessment.feedback)
    lines.extend(f"? {line}" for line in assessment.improvements)
    return Report(title="Quality Assessment", summary_lines=lines)


def learning_report(repository: PatternRepository) -> Report:
    history = repository.feedback_history
    if not history and not repository.patterns:
        return Report(title="Learning State", summary_lines=["No feedback recorded."])
    categories = Counter(item.category for item in repository.knowledge.values())
    lines = [
        f"Feedback records: {len(history)}",
        f"Indexed documents: {len(repository.index)}",
    ]
    if history:
        average = sum(feedback.confidence for feedback in history) / len(history)
        lines.append(f"Average feedback confidence: {average:.0%}")
    for pattern in sorted(repository.patterns.values(), key=lambda p: p.confidence_score, reverse=True):
        lines.append(
            f"- {pattern.id}: {pattern.confidence_score:.2f} confidence, {pattern.usage_count} uses, "
            f"{len(pattern.common_events)} events"
        )
    for category, count in categories.most_common():
        lines.append(f"Knowledge [{category}]: {count}")
    return Report(title="Learning State", summary_lines=lines)

"""Prompt augmentation and result post-processing from retrieved context."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from .models import AnalysisRequest, AnalysisResult, DomainKnowledgeItem, Event, Pattern
from .prompts import FORMAT_EXAMPLES
from .rag import RetrievalEngine, RetrievedContext
from .utils import clamp_unit

logger = logging.getLogger(__name__)


def _pattern_section(patterns: List[Pattern]) -> str:
    lines = ["LEARNED SUCCESSFUL PATTERNS:"]
    for pattern in patterns:
        lines.append(f"- {pattern.screen_type}: Common events include {', '.join(pattern.common_events)}")
        lines.append(
            f"  Successful properties: {', '.join(prop.name for prop in pattern.successful_properties)}"
        )
    return "\n".join(lines)


def _knowledge_example(item: DomainKnowledgeItem) -> Optional[str]:
    if not item.examples or not isinstance(item.examples[0], dict):
        return None
    example = item.examples[0]
    event_name = example.get("eventName")
    if not event_name:
        return None
    properties = ", ".join(
        f"{prop.get('name')} ({prop.get('type')})"
        for prop in example.get("properties") or []
        if isinstance(prop, dict)
    )
    return f"  Example: {event_name} with properties: {properties}"


def _knowledge_section(items: List[DomainKnowledgeItem]) -> str:
    lines = ["DOMAIN EXPERTISE:"]
    for item in items:
        lines.append(f"- {item.title}: {item.description}")
        example = _knowledge_example(item)
        if example:
            lines.append(example)
    return "\n".join(lines)


class ContextEnhancer:
    """Folds retrieved patterns and knowledge into prompts and results."""

    def __init__(self, engine: RetrievalEngine) -> None:
        self.engine = engine

    def render_prompt(self, base_prompt: str, context: RetrievedContext) -> str:
        sections = [base_prompt.rstrip(), FORMAT_EXAMPLES]
        if context.patterns:
            sections.append(_pattern_section(context.patterns))
        if context.knowledge:
            sections.append(_knowledge_section(context.knowledge))
        if context.insights:
            sections.append(
                "\n".join(
                    ["HISTORICAL INSIGHTS FROM USER CORRECTIONS:"]
                    + [f"- {insight}" for insight in context.insights[:3]]
                )
            )
        if context.boosts:
            sections.append(
                "\n".join(
                    ["HIGH-CONFIDENCE EVENTS (previously successful):"]
                    + [f"- {name} (confidence boost: +{boost * 100:.0f}%)" for name, boost in context.boosts.items()]
                )
            )
        return "\n\n".join(sections) + "\n"

    def build_prompt(self, base_prompt: str, request: AnalysisRequest, analysis_type: str = "events") -> str:
        context = self.engine.retrieve_context(request, analysis_type)
        return self.render_prompt(base_prompt, context)

    def enhance_result(
        self,
        result: AnalysisResult,
        request: AnalysisRequest,
        context: Optional[RetrievedContext] = None,
    ) -> AnalysisResult:
        """Return a new result with boosts, pattern properties and insights applied.

        Aggregate confidence becomes the mean event confidence; a result with
        no events keeps its original aggregate.
        """

        if context is None:
            context = self.engine.retrieve_context(request, "events")
        events = [self._enhance_event(event, context) for event in result.events]
        recommendations = list(result.recommendations)
        for insight in context.insights[:3]:
            if insight not in recommendations:
                recommendations.append(insight)
        if events:
            confidence = clamp_unit(sum(event.confidence for event in events) / len(events))
        else:
            confidence = result.confidence
        logger.debug(
            "Enhanced analysis %s: %d boosts, %d insights", result.analysis_id, len(context.boosts), len(context.insights)
        )
        return replace(
            result,
            events=events,
            global_properties=list(result.global_properties),
            carried_properties={screen: list(props) for screen, props in result.carried_properties.items()},
            recommendations=recommendations,
            confidence=confidence,
        )

    @staticmethod
    def _enhance_event(event: Event, context: RetrievedContext) -> Event:
        confidence = clamp_unit(event.confidence + context.boosts.get(event.name, 0.0))
        properties = list(event.properties)
        pattern = next((p for p in context.patterns if event.name in p.common_events), None)
        if pattern is not None:
            known = {prop.name for prop in properties}
            for prop in pattern.successful_properties:
                if prop.name not in known:
                    properties.append(replace(prop))
                    known.add(prop.name)
        return replace(
            event,
            properties=properties,
            triggers=list(event.triggers),
            sources=list(event.sources),
            confidence=confidence,
        )

"""Retrieval augmented generation glue for Journey Assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .models import AnalysisRequest, DomainKnowledgeItem, Pattern, VectorDocument
from .repository import PatternRepository
from .utils import utc_now

ANALYSIS_TYPES = ("events", "properties", "recommendations")

PATTERN_THRESHOLD = 0.7
KNOWLEDGE_THRESHOLD = 0.8
INSIGHT_THRESHOLD = 0.8
RETRIEVAL_LIMIT = 3
BOOST_CAP = 0.2
BOOST_FACTOR = 0.2


@dataclass(slots=True)
class RetrievedContext:
    """Everything retrieved for one analysis: prompt material and score boosts."""

    query: str
    patterns: List[Pattern] = field(default_factory=list)
    knowledge: List[DomainKnowledgeItem] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    boosts: Dict[str, float] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not (self.patterns or self.knowledge or self.insights or self.boosts)


class RetrievalEngine:
    """Looks up learned patterns, curated knowledge and past feedback."""

    def __init__(self, repository: PatternRepository) -> None:
        self.repository = repository

    def build_query(self, request: AnalysisRequest, analysis_type: str = "events") -> str:
        query = f"{analysis_type} analysis for mobile app screens with {len(request.images)} screenshots"
        if request.instruction:
            query += f"\n{request.instruction.strip()}"
        return query

    def retrieve_patterns(
        self,
        query: str,
        category: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[Pattern]:
        """Return up to three patterns above the confidence threshold, best first.

        ``query`` is accepted for interface symmetry with the vector search;
        selection is driven by (effective) confidence only.
        """

        now = now or utc_now()
        retention = self.repository.retention
        scored: List[Tuple[float, Pattern]] = []
        for pattern in self.repository.patterns.values():
            if category and pattern.screen_type != category:
                continue
            score = retention.effective_confidence(pattern, now)
            if score > PATTERN_THRESHOLD:
                scored.append((score, pattern))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [pattern for _, pattern in scored[:RETRIEVAL_LIMIT]]

    def retrieve_knowledge(self, query: str, category: Optional[str] = None) -> List[DomainKnowledgeItem]:
        items = [
            item
            for item in self.repository.knowledge.values()
            if item.confidence > KNOWLEDGE_THRESHOLD and (not category or item.category == category)
        ]
        items.sort(key=lambda item: item.confidence, reverse=True)
        return items[:RETRIEVAL_LIMIT]

    def historical_insights(self, query: str, limit: int = RETRIEVAL_LIMIT) -> List[str]:
        insights: List[str] = []
        for feedback in self.repository.feedback_history:
            if feedback.confidence > INSIGHT_THRESHOLD and feedback.comments.strip():
                insights.append(feedback.comments.strip())
            if len(insights) >= limit:
                break
        return insights

    def similarity_search(self, query: str, limit: int = 5) -> List[Tuple[VectorDocument, float]]:
        return self.repository.index.similarity_search(query, limit=limit)

    def confidence_boosts(
        self,
        patterns: List[Pattern],
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, float]:
        """Map each event name listed by ``patterns`` to a boost in ``[0, 0.2]``.

        When several patterns list the same event the later one wins.
        """

        now = now or utc_now()
        boosts: Dict[str, float] = {}
        for pattern in patterns:
            score = self.repository.retention.effective_confidence(pattern, now)
            boost = max(0.0, min(BOOST_CAP, score * BOOST_FACTOR))
            for event_name in pattern.common_events:
                boosts[event_name] = boost
        return boosts

    def retrieve_context(self, request: AnalysisRequest, analysis_type: str = "events") -> RetrievedContext:
        if analysis_type not in ANALYSIS_TYPES:
            raise ValueError(f"unknown analysis type {analysis_type!r}")
        now = utc_now()
        query = self.build_query(request, analysis_type)
        patterns = self.retrieve_patterns(query, now=now)
        return RetrievedContext(
            query=query,
            patterns=patterns,
            knowledge=self.retrieve_knowledge(query),
            insights=self.historical_insights(query),
            boosts=self.confidence_boosts(patterns, now=now),
        )

"""In-memory store of learned patterns, domain knowledge and feedback history."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import PersistenceFailure
from .index import VectorIndex
from .knowledge import naming_knowledge, seed_knowledge
from .models import DomainKnowledgeItem, Feedback, Pattern
from .store import KeyValueStore, MemoryKeyValueStore
from .utils import clamp_unit, utc_now

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "rag_historical_data"


@dataclass(slots=True)
class RetentionPolicy:
    """Bounds on learned state growth.

    ``max_feedback_history`` caps the stored feedback list (oldest dropped
    first). ``pattern_decay_per_day`` lowers the *effective* confidence of a
    pattern used for retrieval by that amount per idle day, never below
    ``decay_floor``; the stored ``confidence_score`` is left untouched.
    """

    max_feedback_history: int = 500
    pattern_decay_per_day: float = 0.0
    decay_floor: float = 0.5

    def effective_confidence(self, pattern: Pattern, now: Optional[datetime] = None) -> float:
        if self.pattern_decay_per_day <= 0:
            return pattern.confidence_score
        now = now or utc_now()
        idle_days = max(0.0, (now - pattern.last_used).total_seconds() / 86400)
        decayed = pattern.confidence_score - self.pattern_decay_per_day * idle_days
        return clamp_unit(max(min(self.decay_floor, pattern.confidence_score), decayed))


class PatternRepository:
    """Owns every piece of learned state and its durable snapshot.

    The repository is not thread-safe; :class:`~journey_assistant.learning.FeedbackLearner`
    serializes all mutation through its own lock.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        index: VectorIndex | None = None,
        retention: RetentionPolicy | None = None,
        namespace: str = SNAPSHOT_KEY,
        autoload: bool = True,
    ) -> None:
        self.store = store if store is not None else MemoryKeyValueStore()
        self.index = index if index is not None else VectorIndex()
        self.retention = retention or RetentionPolicy()
        self.namespace = namespace
        self.patterns: Dict[str, Pattern] = {}
        self.knowledge: Dict[str, DomainKnowledgeItem] = {}
        self._seeded: Dict[str, DomainKnowledgeItem] = {}
        self.feedback_history: List[Feedback] = []
        if autoload:
            self.initialize()

    def initialize(self) -> None:
        self.seed_domain_knowledge()
        self.load_historical_data()
        logger.info(
            "Repository ready: %d patterns, %d knowledge items, %d feedback records",
            len(self.patterns),
            len(self.knowledge),
            len(self.feedback_history),
        )

    def seed_domain_knowledge(self) -> None:
        for item in seed_knowledge():
            self.knowledge[item.id] = item
            self._seeded[item.id] = item

    def load_historical_data(self) -> None:
        """Restore feedback, patterns and learned knowledge, then rebuild derived state."""

        try:
            raw = self.store.get(self.namespace)
        except PersistenceFailure as exc:
            logger.warning("Failed to load historical learning data: %s", exc)
            return
        if not raw:
            return
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Stored learning snapshot is not valid JSON: %s", exc)
            return
        if not isinstance(data, dict):
            logger.warning("Stored learning snapshot has unexpected type %s", type(data).__name__)
            return

        history: List[Feedback] = []
        for entry in data.get("feedback") or []:
            try:
                history.append(Feedback.from_dict(entry))
            except ValueError as exc:
                logger.warning("Skipping unreadable feedback record: %s", exc)
        patterns: Dict[str, Pattern] = {}
        for entry in data.get("patterns") or []:
            try:
                pattern = Pattern.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable pattern record: %s", exc)
                continue
            patterns[pattern.id] = pattern
        learned: List[DomainKnowledgeItem] = []
        for entry in data.get("knowledge") or []:
            try:
                learned.append(DomainKnowledgeItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable knowledge record: %s", exc)

        self.feedback_history = history
        self.patterns = patterns
        for item in learned:
            self.upsert_knowledge(item)
        self.index.clear()
        for feedback in history:
            self.index_feedback(feedback)
            self.record_naming_changes(feedback)

    # ------------------------------------------------------------------
    # Mutation helpers, called by the feedback learner
    # ------------------------------------------------------------------

    def get_pattern(self, pattern_id: str) -> Pattern | None:
        return self.patterns.get(pattern_id)

    def upsert_pattern(self, pattern: Pattern) -> None:
        self.patterns[pattern.id] = pattern

    def upsert_knowledge(self, item: DomainKnowledgeItem) -> None:
        self.knowledge[item.id] = item

    def append_feedback(self, feedback: Feedback) -> None:
        self.feedback_history.append(feedback)

    def learned_knowledge(self) -> List[DomainKnowledgeItem]:
        """Knowledge added or replaced since seeding; the seeds are rebuilt on load."""

        return [item for item_id, item in self.knowledge.items() if self._seeded.get(item_id) is not item]

    def record_naming_changes(self, feedback: Feedback) -> List[DomainKnowledgeItem]:
        items = [
            naming_knowledge(old_name, new_name)
            for old_name, new_name in feedback.improvements.event_name_changes.items()
        ]
        for item in items:
            self.upsert_knowledge(item)
        return items

    def index_feedback(self, feedback: Feedback) -> None:
        content = "\n".join(
            [
                f"Analysis: {feedback.analysis_id}",
                f"Events: {', '.join(event.name for event in feedback.corrected_events)}",
                f"Comments: {feedback.comments}",
                f"Confidence: {feedback.confidence}",
            ]
        )
        self.index.add_document(
            feedback.analysis_id,
            content,
            {
                "type": "feedback",
                "confidence": feedback.confidence,
                "timestamp": feedback.timestamp.isoformat(),
            },
        )

    def apply_retention(self) -> int:
        """Drop the oldest feedback beyond the history cap. Returns how many were dropped."""

        limit = self.retention.max_feedback_history
        if limit <= 0 or len(self.feedback_history) <= limit:
            return 0
        dropped = self.feedback_history[:-limit]
        self.feedback_history = self.feedback_history[-limit:]
        retained_ids = {feedback.analysis_id for feedback in self.feedback_history}
        for feedback in dropped:
            if feedback.analysis_id not in retained_ids:
                self.index.remove(feedback.analysis_id)
        logger.info("Evicted %d feedback records beyond history cap %d", len(dropped), limit)
        return len(dropped)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "feedback": [feedback.to_dict() for feedback in self.feedback_history],
            "patterns": [pattern.to_dict() for pattern in self.patterns.values()],
            "knowledge": [item.to_dict() for item in self.learned_knowledge()],
            "timestamp": utc_now().isoformat(),
        }

    def persist(self) -> bool:
        """Overwrite the durable snapshot. Failures are logged, never raised."""

        try:
            self.store.put(self.namespace, json.dumps(self.snapshot(), ensure_ascii=False))
        except PersistenceFailure as exc:
            logger.error("Failed to persist learning snapshot: %s", exc)
            return False
        return True

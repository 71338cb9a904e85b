"""Online learner folding human corrections into the pattern repository."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Dict, List, Union

from .errors import MalformedFeedback
from .models import Event, Feedback, Pattern, Property
from .repository import PatternRepository
from .utils import utc_now

logger = logging.getLogger(__name__)

INITIAL_PATTERN_CONFIDENCE = 0.5
CONFIDENCE_STEP = 0.1


def validate_feedback(feedback: Feedback) -> None:
    """Raise ``MalformedFeedback`` when an already-built record is unusable.

    A record passes only if it would survive a save and reload, so it is held
    to the same rules as ``Feedback.from_dict``: known categories, types and
    sources, and every confidence in [0, 1].
    """

    for event in feedback.corrected_events:
        if not event.name.strip():
            raise MalformedFeedback(f"corrected event {event.id!r} has no name")
    for old_name, new_name in feedback.improvements.event_name_changes.items():
        if not old_name.strip() or not new_name.strip():
            raise MalformedFeedback(f"event name change {old_name!r} -> {new_name!r} is incomplete")
    try:
        payload = feedback.to_dict()
    except (AttributeError, TypeError) as exc:
        raise MalformedFeedback(f"feedback for {feedback.analysis_id!r} cannot be serialized: {exc}") from exc
    Feedback.from_dict(payload)


class FeedbackLearner:
    """Single writer for repository state; every ingest runs under one lock."""

    def __init__(self, repository: PatternRepository) -> None:
        self.repository = repository
        self.lock = threading.Lock()

    def ingest_feedback(self, feedback: Union[Feedback, Dict[str, Any]]) -> None:
        if isinstance(feedback, dict):
            feedback = Feedback.from_dict(feedback)
        elif not isinstance(feedback, Feedback):
            raise MalformedFeedback(f"feedback must be a Feedback or dict, got {type(feedback).__name__}")
        validate_feedback(feedback)

        with self.lock:
            touched = self._update_patterns(feedback)
            learned = self.repository.record_naming_changes(feedback)
            self.repository.append_feedback(feedback)
            self.repository.index_feedback(feedback)
            self.repository.apply_retention()
            persisted = self.repository.persist()

        logger.info(
            "Learned from feedback %s: %d patterns updated, %d naming rules%s",
            feedback.analysis_id,
            len(touched),
            len(learned),
            "" if persisted else " (not persisted)",
        )

    def _update_patterns(self, feedback: Feedback) -> List[Pattern]:
        improvements = feedback.improvements
        touched: List[Pattern] = []
        for event in feedback.corrected_events:
            category = improvements.category_corrections.get(event.id, event.category)
            corrections = improvements.property_corrections.get(event.id, [])
            pattern = self._find_or_create(category)
            self._reinforce(pattern, event, corrections)
            touched.append(pattern)
        return touched

    def _find_or_create(self, category: str) -> Pattern:
        pattern_id = f"{category}_pattern"
        pattern = self.repository.get_pattern(pattern_id)
        if pattern is None:
            pattern = Pattern(
                id=pattern_id,
                screen_type=category,
                confidence_score=INITIAL_PATTERN_CONFIDENCE,
            )
            self.repository.upsert_pattern(pattern)
        return pattern

    @staticmethod
    def _reinforce(pattern: Pattern, event: Event, corrections: List[Property]) -> None:
        if event.name not in pattern.common_events:
            pattern.common_events.append(event.name)
        known = {prop.name for prop in pattern.successful_properties}
        for prop in [*event.properties, *corrections]:
            if prop.name not in known:
                pattern.successful_properties.append(replace(prop))
                known.add(prop.name)
        pattern.usage_count += 1
        pattern.confidence_score = round(min(1.0, pattern.confidence_score + CONFIDENCE_STEP), 6)
        pattern.last_used = utc_now()

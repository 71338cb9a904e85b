from datetime import timedelta

import pytest

from journey_assistant.models import AnalysisRequest, Feedback, Pattern, Property
from journey_assistant.rag import RetrievalEngine
from journey_assistant.repository import PatternRepository, RetentionPolicy
from journey_assistant.store import MemoryKeyValueStore
from journey_assistant.utils import utc_now


def _pattern(category, score, events=("bannerClicked",)):
    return Pattern(
        id=f"{category}_pattern",
        screen_type=category,
        common_events=list(events),
        successful_properties=[Property(name="source")],
        confidence_score=score,
    )


@pytest.fixture
def repository():
    return PatternRepository(MemoryKeyValueStore())


def test_patterns_above_threshold_ranked_and_limited(repository):
    for category, score in [("a", 0.7), ("b", 0.71), ("c", 0.95), ("d", 0.8), ("e", 0.9)]:
        repository.upsert_pattern(_pattern(category, score))
    engine = RetrievalEngine(repository)

    patterns = engine.retrieve_patterns("events analysis")

    assert [p.screen_type for p in patterns] == ["c", "e", "d"]


def test_pattern_category_filter(repository):
    repository.upsert_pattern(_pattern("user_action", 0.9))
    repository.upsert_pattern(_pattern("screen_view", 0.95))
    engine = RetrievalEngine(repository)

    patterns = engine.retrieve_patterns("q", category="user_action")

    assert [p.id for p in patterns] == ["user_action_pattern"]


def test_knowledge_uses_higher_threshold_and_stable_order(repository):
    engine = RetrievalEngine(repository)

    items = engine.retrieve_knowledge("q")

    assert [item.id for item in items] == [
        "feed_banner_pattern",
        "round_selection_pattern",
        "wallet_clicked_pattern",
    ]
    assert all(item.confidence > 0.8 for item in items)
    assert [item.id for item in engine.retrieve_knowledge("q", category="property_types")] == [
        "property_type_conventions"
    ]


@pytest.mark.parametrize("score", [0.0, 0.3, 0.75, 1.0, 5.0, -2.0])
def test_confidence_boosts_stay_within_cap(repository, score):
    engine = RetrievalEngine(repository)

    boosts = engine.confidence_boosts([_pattern("x", score, events=("a", "b"))])

    assert set(boosts) == {"a", "b"}
    assert all(0.0 <= boost <= 0.2 for boost in boosts.values())


def test_confidence_boost_value(repository):
    engine = RetrievalEngine(repository)

    boosts = engine.confidence_boosts([_pattern("x", 0.75)])

    assert boosts["bannerClicked"] == pytest.approx(0.15)


def test_historical_insights_use_confident_comments(repository):
    for idx, (confidence, comment) in enumerate(
        [(0.9, "Prefer camelCase"), (0.5, "ignored"), (0.95, ""), (0.85, "Add source"), (0.99, "Type ids as int"), (0.9, "fourth")]
    ):
        repository.append_feedback(Feedback(analysis_id=f"a{idx}", comments=comment, confidence=confidence))
    engine = RetrievalEngine(repository)

    assert engine.historical_insights("q") == ["Prefer camelCase", "Add source", "Type ids as int"]


def test_similarity_search_over_indexed_feedback(repository):
    repository.index_feedback(Feedback(analysis_id="wallet", comments="wallet balance was wrong", confidence=0.9))
    repository.index_feedback(Feedback(analysis_id="banner", comments="banner swipe", confidence=0.9))
    engine = RetrievalEngine(repository)

    results = engine.similarity_search("wallet balance wrong", limit=1)

    assert [doc.doc_id for doc, _ in results] == ["wallet"]
    assert results[0][0].metadata["type"] == "feedback"


def test_retrieve_context_bundles_everything(repository):
    repository.upsert_pattern(_pattern("user_action", 0.9))
    repository.append_feedback(Feedback(analysis_id="a", comments="Use source", confidence=0.9))
    engine = RetrievalEngine(repository)

    context = engine.retrieve_context(AnalysisRequest(instruction="Focus on wallet"), "events")

    assert "events analysis" in context.query
    assert "Focus on wallet" in context.query
    assert [p.id for p in context.patterns] == ["user_action_pattern"]
    assert context.insights == ["Use source"]
    assert context.boosts == {"bannerClicked": pytest.approx(0.18)}
    assert len(context.knowledge) == 3


def test_retrieve_context_rejects_unknown_analysis_type(repository):
    with pytest.raises(ValueError):
        RetrievalEngine(repository).retrieve_context(AnalysisRequest(), "layout")


def test_decay_lowers_effective_confidence_only(repository):
    repository.retention = RetentionPolicy(pattern_decay_per_day=0.1)
    stale = _pattern("user_action", 0.9)
    stale.last_used = utc_now() - timedelta(days=3)
    repository.upsert_pattern(stale)
    engine = RetrievalEngine(repository)

    assert engine.retrieve_patterns("q") == []
    assert stale.confidence_score == 0.9


def test_decay_never_drops_below_floor():
    policy = RetentionPolicy(pattern_decay_per_day=0.5, decay_floor=0.5)
    pattern = _pattern("x", 0.9)
    pattern.last_used = utc_now() - timedelta(days=30)

    assert policy.effective_confidence(pattern) == pytest.approx(0.5)
    assert RetentionPolicy().effective_confidence(pattern) == 0.9

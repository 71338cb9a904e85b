import pytest

from journey_assistant.context import ContextEnhancer
from journey_assistant.learning import FeedbackLearner
from journey_assistant.models import AnalysisRequest, AnalysisResult, Event, Property
from journey_assistant.prompts import BASE_PROMPT, FORMAT_EXAMPLES
from journey_assistant.rag import RetrievalEngine
from journey_assistant.repository import PatternRepository
from journey_assistant.store import MemoryKeyValueStore


def _learned_repository(times=3):
    repository = PatternRepository(MemoryKeyValueStore())
    learner = FeedbackLearner(repository)
    for idx in range(times):
        learner.ingest_feedback(
            {
                "analysisId": f"a{idx}",
                "correctedEvents": [
                    {
                        "name": "bannerClicked",
                        "category": "user_action",
                        "properties": [{"name": "bannerId"}, {"name": "source"}],
                    }
                ],
                "comments": f"Banner events need a source ({idx})",
                "confidence": 0.9,
            }
        )
    return repository


def _enhancer(repository):
    return ContextEnhancer(RetrievalEngine(repository))


def test_prompt_without_learning_has_examples_and_seeded_knowledge_only():
    prompt = _enhancer(PatternRepository(MemoryKeyValueStore())).build_prompt("BASE", AnalysisRequest(), "events")

    assert prompt.startswith("BASE")
    assert FORMAT_EXAMPLES in prompt
    assert "DOMAIN EXPERTISE:" in prompt
    assert "LEARNED SUCCESSFUL PATTERNS:" not in prompt
    assert "HISTORICAL INSIGHTS FROM USER CORRECTIONS:" not in prompt
    assert "HIGH-CONFIDENCE EVENTS" not in prompt


def test_prompt_sections_appear_in_fixed_order():
    prompt = _enhancer(_learned_repository()).build_prompt(BASE_PROMPT, AnalysisRequest(), "events")

    markers = [
        FORMAT_EXAMPLES.splitlines()[0],
        "LEARNED SUCCESSFUL PATTERNS:",
        "DOMAIN EXPERTISE:",
        "HISTORICAL INSIGHTS FROM USER CORRECTIONS:",
        "HIGH-CONFIDENCE EVENTS (previously successful):",
    ]
    positions = [prompt.index(marker) for marker in markers]
    assert positions == sorted(positions)
    assert "- user_action: Common events include bannerClicked" in prompt
    assert "  Successful properties: bannerId, source" in prompt
    assert "- bannerClicked (confidence boost: +16%)" in prompt
    assert "  Example: FeedBannerClicked with properties: bannerId (long), imageUrl (varchar)" in prompt


def test_prompt_is_deterministic():
    enhancer = _enhancer(_learned_repository())
    request = AnalysisRequest(instruction="checkout flow")

    assert enhancer.build_prompt("BASE", request) == enhancer.build_prompt("BASE", request)


def test_prompt_lists_at_most_three_insights():
    prompt = _enhancer(_learned_repository(times=5)).build_prompt("BASE", AnalysisRequest())

    assert prompt.count("- Banner events need a source") == 3


def test_enhance_result_boosts_enriches_and_recomputes_confidence():
    enhancer = _enhancer(_learned_repository())
    original = AnalysisResult(
        events=[
            Event(id="event_1", name="bannerClicked", properties=[Property(name="bannerId")], confidence=0.7),
            Event(id="event_2", name="otherTapped", confidence=0.6),
        ],
        recommendations=["Existing"],
        confidence=0.85,
        analysis_id="a",
    )

    enhanced = enhancer.enhance_result(original, AnalysisRequest())

    boosted, untouched = enhanced.events
    assert boosted.confidence == pytest.approx(0.86)
    assert [prop.name for prop in boosted.properties] == ["bannerId", "source"]
    assert untouched.confidence == 0.6
    assert untouched.properties == []
    assert enhanced.recommendations[0] == "Existing"
    assert len(enhanced.recommendations) == 4
    assert enhanced.confidence == pytest.approx((0.86 + 0.6) / 2)
    assert original.events[0].confidence == 0.7
    assert [prop.name for prop in original.events[0].properties] == ["bannerId"]
    assert original.recommendations == ["Existing"]


def test_enhance_result_clamps_boosted_confidence():
    enhancer = _enhancer(_learned_repository(times=6))
    result = AnalysisResult(events=[Event(id="event_1", name="bannerClicked", confidence=0.95)])

    enhanced = enhancer.enhance_result(result, AnalysisRequest())

    assert enhanced.events[0].confidence == 1.0
    assert enhanced.confidence == 1.0


def test_enhance_result_without_events_keeps_aggregate():
    enhancer = _enhancer(PatternRepository(MemoryKeyValueStore()))
    result = AnalysisResult(confidence=0.4)

    assert enhancer.enhance_result(result, AnalysisRequest()).confidence == 0.4

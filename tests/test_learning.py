import json

import pytest

from journey_assistant.errors import MalformedFeedback, PersistenceFailure
from journey_assistant.learning import FeedbackLearner
from journey_assistant.models import Event, Feedback, FeedbackImprovements, Property
from journey_assistant.repository import SNAPSHOT_KEY, PatternRepository, RetentionPolicy
from journey_assistant.store import MemoryKeyValueStore, SQLiteKeyValueStore


def _rename_feedback(analysis_id="analysis_1", confidence=0.9, comments="Use verb-based names"):
    return {
        "analysisId": analysis_id,
        "correctedEvents": [
            {
                "name": "bannerClicked",
                "category": "user_action",
                "properties": [
                    {"name": "bannerId", "type": "string"},
                    {"name": "source", "type": "string"},
                ],
            }
        ],
        "comments": comments,
        "confidence": confidence,
        "improvements": {"eventNameChanges": {"clk": "bannerClicked"}},
    }


class FailingStore:
    def get(self, key):
        return None

    def put(self, key, value):
        raise PersistenceFailure("disk full")


def test_two_rename_feedbacks_reinforce_pattern_and_learn_naming():
    repository = PatternRepository(MemoryKeyValueStore())
    learner = FeedbackLearner(repository)

    learner.ingest_feedback(_rename_feedback("a1"))
    learner.ingest_feedback(_rename_feedback("a2"))

    pattern = repository.get_pattern("user_action_pattern")
    assert pattern.usage_count == 2
    assert pattern.confidence_score == pytest.approx(0.7)
    assert pattern.common_events == ["bannerClicked"]
    assert [prop.name for prop in pattern.successful_properties] == ["bannerId", "source"]
    knowledge = repository.knowledge["naming_bannerClicked"]
    assert knowledge.category == "event_naming"
    assert knowledge.confidence == 0.9
    assert knowledge.examples == [{"old": "clk", "new": "bannerClicked"}]


@pytest.mark.parametrize("count", [1, 3, 5, 8])
def test_confidence_after_n_feedbacks(count):
    repository = PatternRepository(MemoryKeyValueStore())
    learner = FeedbackLearner(repository)

    for idx in range(count):
        learner.ingest_feedback(_rename_feedback(f"a{idx}"))

    pattern = repository.get_pattern("user_action_pattern")
    assert pattern.usage_count == count
    assert pattern.confidence_score == pytest.approx(min(1.0, 0.5 + 0.1 * count))


def test_feedback_is_appended_indexed_and_persisted():
    store = MemoryKeyValueStore()
    repository = PatternRepository(store)

    FeedbackLearner(repository).ingest_feedback(_rename_feedback("a1"))

    assert [fb.analysis_id for fb in repository.feedback_history] == ["a1"]
    assert repository.index.fetch("a1").metadata["type"] == "feedback"
    snapshot = json.loads(store.get(SNAPSHOT_KEY))
    assert set(snapshot) == {"feedback", "patterns", "knowledge", "timestamp"}
    assert [item["id"] for item in snapshot["knowledge"]] == ["naming_bannerClicked"]
    assert snapshot["patterns"][0]["id"] == "user_action_pattern"
    assert snapshot["feedback"][0]["analysisId"] == "a1"


def test_state_reloads_from_sqlite_snapshot(tmp_path):
    db_path = tmp_path / "learning.db"
    store = SQLiteKeyValueStore(db_path)
    FeedbackLearner(PatternRepository(store)).ingest_feedback(_rename_feedback("a1"))
    store.close()

    reloaded = PatternRepository(SQLiteKeyValueStore(db_path))

    pattern = reloaded.get_pattern("user_action_pattern")
    assert pattern.usage_count == 1
    assert pattern.confidence_score == pytest.approx(0.6)
    assert "naming_bannerClicked" in reloaded.knowledge
    assert "feed_banner_pattern" in reloaded.knowledge
    assert len(reloaded.index) == 1
    assert reloaded.feedback_history[0].comments == "Use verb-based names"


def test_corrupt_snapshot_is_ignored():
    store = MemoryKeyValueStore({SNAPSHOT_KEY: "{not json"})

    repository = PatternRepository(store)

    assert repository.patterns == {}
    assert repository.feedback_history == []
    assert "event_naming_conventions" in repository.knowledge


def test_persistence_failure_is_swallowed():
    repository = PatternRepository(FailingStore())

    FeedbackLearner(repository).ingest_feedback(_rename_feedback())

    assert repository.get_pattern("user_action_pattern").usage_count == 1
    assert repository.persist() is False


@pytest.mark.parametrize(
    "payload",
    [
        "not a dict",
        {"correctedEvents": [], "confidence": 0.5},
        {"analysisId": "a", "correctedEvents": []},
        {"analysisId": "a", "correctedEvents": [], "confidence": 1.5},
        {"analysisId": "a", "correctedEvents": {"name": "x"}, "confidence": 0.5},
        {"analysisId": "a", "correctedEvents": [{"properties": []}], "confidence": 0.5},
        {"analysisId": "a", "correctedEvents": [], "confidence": 0.5, "improvements": {"eventNameChanges": {"x": ""}}},
    ],
)
def test_malformed_feedback_is_rejected(payload):
    repository = PatternRepository(MemoryKeyValueStore())

    with pytest.raises(MalformedFeedback):
        FeedbackLearner(repository).ingest_feedback(payload)

    assert repository.feedback_history == []


def test_built_feedback_is_validated_too():
    event = Event(id="e1", name="tap", properties=[Property(name="p"), Property(name="p")])
    feedback = Feedback(analysis_id="a", corrected_events=[event], confidence=0.5)

    with pytest.raises(MalformedFeedback):
        FeedbackLearner(PatternRepository(MemoryKeyValueStore())).ingest_feedback(feedback)


def test_category_and_property_corrections_are_applied():
    repository = PatternRepository(MemoryKeyValueStore())
    feedback = Feedback(
        analysis_id="a",
        corrected_events=[Event(id="event_1", name="homeViewed", properties=[Property(name="section")])],
        confidence=0.8,
        improvements=FeedbackImprovements(
            property_corrections={"event_1": [Property(name="section"), Property(name="slotPosition", type="number")]},
            category_corrections={"event_1": "screen_view"},
        ),
    )

    FeedbackLearner(repository).ingest_feedback(feedback)

    pattern = repository.get_pattern("screen_view_pattern")
    assert repository.get_pattern("user_action_pattern") is None
    assert [prop.name for prop in pattern.successful_properties] == ["section", "slotPosition"]


def test_retention_caps_history_and_index():
    repository = PatternRepository(MemoryKeyValueStore(), retention=RetentionPolicy(max_feedback_history=2))
    learner = FeedbackLearner(repository)

    for idx in range(3):
        learner.ingest_feedback(_rename_feedback(f"a{idx}"))

    assert [fb.analysis_id for fb in repository.feedback_history] == ["a1", "a2"]
    assert repository.index.fetch("a0") is None
    assert len(repository.index) == 2
    assert repository.get_pattern("user_action_pattern").usage_count == 3


def test_user_comments_alias_is_accepted():
    payload = _rename_feedback()
    payload["userComments"] = payload.pop("comments")

    feedback = Feedback.from_dict(payload)

    assert feedback.comments == "Use verb-based names"


@pytest.mark.parametrize(
    "event",
    [
        Event(id="e1", name="bannerClicked", properties=[Property(name="bannerId", type="long")]),
        Event(id="e1", name="bannerClicked", properties=[Property(name="bannerId", source="server")]),
        Event(id="e1", name="bannerClicked", properties=[Property(name="bannerId", confidence=1.4)]),
        Event(id="e1", name="bannerClicked", category="bogus"),
        Event(id="e1", name="bannerClicked", confidence=7.0),
    ],
)
def test_built_feedback_must_survive_reload(event):
    store = MemoryKeyValueStore()
    repository = PatternRepository(store)
    feedback = Feedback(analysis_id="a", corrected_events=[event], confidence=0.5)

    with pytest.raises(MalformedFeedback):
        FeedbackLearner(repository).ingest_feedback(feedback)

    assert repository.patterns == {}
    assert repository.feedback_history == []
    assert store.get(SNAPSHOT_KEY) is None


def test_built_feedback_with_bad_property_correction_is_rejected():
    feedback = Feedback(
        analysis_id="a",
        corrected_events=[Event(id="e1", name="bannerClicked")],
        confidence=0.5,
        improvements=FeedbackImprovements(property_corrections={"e1": [Property(name="slot", type="int")]}),
    )

    with pytest.raises(MalformedFeedback):
        FeedbackLearner(PatternRepository(MemoryKeyValueStore())).ingest_feedback(feedback)


def test_accepted_built_feedback_reloads_with_its_pattern():
    store = MemoryKeyValueStore()
    learner = FeedbackLearner(PatternRepository(store))
    event = Event(id="e1", name="bannerClicked", properties=[Property(name="bannerId", type="number")])

    for idx in range(3):
        learner.ingest_feedback(Feedback(analysis_id=f"a{idx}", corrected_events=[event], confidence=0.9))

    reloaded = PatternRepository(store)
    pattern = reloaded.get_pattern("user_action_pattern")
    assert pattern.usage_count == 3
    assert pattern.confidence_score == pytest.approx(0.8)
    assert len(reloaded.feedback_history) == 3


def test_learned_naming_survives_eviction_and_reload():
    store = MemoryKeyValueStore()
    repository = PatternRepository(store, retention=RetentionPolicy(max_feedback_history=1))
    learner = FeedbackLearner(repository)

    learner.ingest_feedback(_rename_feedback("a1"))
    later = _rename_feedback("a2")
    later["improvements"] = {}
    learner.ingest_feedback(later)

    assert [fb.analysis_id for fb in repository.feedback_history] == ["a2"]
    assert "naming_bannerClicked" in repository.knowledge
    reloaded = PatternRepository(store, retention=RetentionPolicy(max_feedback_history=1))
    item = reloaded.knowledge["naming_bannerClicked"]
    assert item.category == "event_naming"
    assert item.examples == [{"old": "clk", "new": "bannerClicked"}]
    snapshot = json.loads(store.get(SNAPSHOT_KEY))
    assert [entry["id"] for entry in snapshot["knowledge"]] == ["naming_bannerClicked"]

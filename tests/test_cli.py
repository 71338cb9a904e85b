import json

import pytest
from PIL import Image

import main


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    for name in (
        "OPENAI_API_KEY",
        "VITE_OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "VITE_GEMINI_API_KEY",
        "JOURNEY_ASSISTANT_PROVIDER",
        "JOURNEY_ASSISTANT_MODEL",
        "JOURNEY_ASSISTANT_TIMEOUT",
        "JOURNEY_ASSISTANT_ENHANCE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JOURNEY_ASSISTANT_DB", str(tmp_path / "learning.db"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_analyze_without_keys_prints_sample_json(clean_env, capsys):
    image_path = clean_env / "screen.png"
    Image.new("RGB", (8, 8)).save(image_path)

    code = main.main(["analyze", str(image_path), "--json", "--output", str(clean_env / "out.json")])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert len(payload["events"]) == 6
    assert json.loads((clean_env / "out.json").read_text(encoding="utf-8")) == payload


def test_analyze_reports_unreadable_images(clean_env):
    assert main.main(["analyze", str(clean_env / "missing.png")]) == 2


def test_feedback_then_report_uses_persistent_state(clean_env, capsys):
    feedback_path = clean_env / "feedback.json"
    feedback_path.write_text(
        json.dumps(
            {
                "analysisId": "analysis_1",
                "correctedEvents": [{"name": "bannerClicked", "properties": [{"name": "source"}]}],
                "comments": "Rename clk",
                "confidence": 0.9,
                "improvements": {"eventNameChanges": {"clk": "bannerClicked"}},
            }
        ),
        encoding="utf-8",
    )

    assert main.main(["feedback", str(feedback_path)]) == 0
    capsys.readouterr()
    assert main.main(["report"]) == 0

    out = capsys.readouterr().out
    assert "Feedback records: 1" in out
    assert "user_action_pattern: 0.60 confidence, 1 uses" in out


def test_malformed_feedback_exits_with_error(clean_env, capsys):
    feedback_path = clean_env / "feedback.json"
    feedback_path.write_text(json.dumps({"analysisId": "a"}), encoding="utf-8")

    assert main.main(["feedback", str(feedback_path)]) == 2
    assert "Rejected feedback" in capsys.readouterr().err


def test_assess_saved_result(clean_env, capsys):
    result_path = clean_env / "result.json"
    result_path.write_text(
        json.dumps({"events": [{"name": "walletClicked", "properties": [{"name": "source"}]}]}),
        encoding="utf-8",
    )

    assert main.main(["assess", str(result_path)]) == 0
    assert "Quality Assessment" in capsys.readouterr().out


def test_connection_check_without_keys_fails(clean_env, capsys):
    assert main.main(["test-connection"]) == 1
    assert "openai: unavailable" in capsys.readouterr().out


def test_learning_persists_between_runs_by_default(clean_env, monkeypatch, capsys):
    monkeypatch.delenv("JOURNEY_ASSISTANT_DB")
    monkeypatch.setenv("HOME", str(clean_env))
    feedback_path = clean_env / "feedback.json"
    feedback_path.write_text(
        json.dumps(
            {
                "analysisId": "analysis_1",
                "correctedEvents": [{"name": "walletClicked", "properties": [{"name": "source"}]}],
                "comments": "Wallet taps need a source",
                "confidence": 0.9,
            }
        ),
        encoding="utf-8",
    )

    assert main.main(["feedback", str(feedback_path)]) == 0
    capsys.readouterr()
    assert main.main(["report"]) == 0

    assert "Feedback records: 1" in capsys.readouterr().out
    assert (clean_env / ".journey_assistant" / "learning.db").exists()

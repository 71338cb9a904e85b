"""Command-line front end for Journey Assistant."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from journey_assistant.config import AssistantConfig
from journey_assistant.errors import MalformedFeedback
from journey_assistant.images import load_images
from journey_assistant.models import AnalysisRequest, AnalysisResult
from journey_assistant.pipeline import JourneyAssistant
from journey_assistant.rag import ANALYSIS_TYPES

logger = logging.getLogger(__name__)


def load_config(env_file: Optional[str]) -> AssistantConfig:
    if env_file:
        return AssistantConfig.from_env_file(env_file)
    default_file = Path(".env")
    if default_file.exists():
        return AssistantConfig.from_env_file(default_file)
    return AssistantConfig.from_env()


def read_json(path: str):
    if path == "-":
        return json.load(sys.stdin)
    return json.loads(Path(path).read_text(encoding="utf-8"))


def run_analyze(assistant: JourneyAssistant, args: argparse.Namespace) -> int:
    try:
        images = load_images(args.images)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"Cannot read images: {exc}\n")
        return 2
    request = AnalysisRequest(images=images, instruction=args.instruction)
    result = assistant.analyze(request, analysis_type=args.type)
    if args.json:
        print(result.to_json())
    else:
        print(assistant.analysis_report_text(result))
        print()
        print(assistant.quality_report_text(result))
    if args.output:
        Path(args.output).write_text(result.to_json(), encoding="utf-8")
        logger.info("Wrote analysis to %s", args.output)
    return 0


def run_feedback(assistant: JourneyAssistant, args: argparse.Namespace) -> int:
    try:
        assistant.submit_feedback(read_json(args.feedback))
    except (OSError, ValueError) as exc:
        # MalformedFeedback is a ValueError; so is json.JSONDecodeError.
        label = "Rejected feedback" if isinstance(exc, MalformedFeedback) else "Cannot read feedback"
        sys.stderr.write(f"{label}: {exc}\n")
        return 2
    print(assistant.learning_report_text())
    return 0


def run_assess(assistant: JourneyAssistant, args: argparse.Namespace) -> int:
    try:
        result = AnalysisResult.from_dict(read_json(args.result))
    except (OSError, ValueError, AttributeError) as exc:
        sys.stderr.write(f"Cannot read analysis result: {exc}\n")
        return 2
    print(assistant.quality_report_text(result))
    return 0


def run_report(assistant: JourneyAssistant, args: argparse.Namespace) -> int:
    print(assistant.learning_report_text())
    return 0


def run_test_connection(assistant: JourneyAssistant, args: argparse.Namespace) -> int:
    ok = assistant.test_connection(args.provider)
    print(f"{args.provider or assistant.config.provider}: {'ok' if ok else 'unavailable'}")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Journey Assistant screen analysis")
    parser.add_argument("--env-file", help="dotenv file with API keys and settings (default: ./.env)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze screenshots into an event specification")
    analyze.add_argument("images", nargs="+", help="Screenshot files in journey order")
    analyze.add_argument("--instruction", help="Extra requirements for the model")
    analyze.add_argument("--type", choices=ANALYSIS_TYPES, default="events", help="Analysis focus")
    analyze.add_argument("--json", action="store_true", help="Print the raw result JSON")
    analyze.add_argument("--output", help="Also write the result JSON to this path")
    analyze.set_defaults(handler=run_analyze)

    feedback = sub.add_parser("feedback", help="Submit corrections for a previous analysis")
    feedback.add_argument("feedback", help="Feedback JSON file, or - for stdin")
    feedback.set_defaults(handler=run_feedback)

    assess = sub.add_parser("assess", help="Score a saved analysis result")
    assess.add_argument("result", help="Analysis result JSON file, or - for stdin")
    assess.set_defaults(handler=run_assess)

    report = sub.add_parser("report", help="Show the learned pattern state")
    report.set_defaults(handler=run_report)

    test = sub.add_parser("test-connection", help="Check that the configured backend answers")
    test.add_argument("--provider", choices=("openai", "gemini"))
    test.set_defaults(handler=run_test_connection)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.env_file)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"Invalid configuration: {exc}\n")
        return 2
    assistant = JourneyAssistant(config)
    try:
        return args.handler(assistant, args)
    finally:
        assistant.close()


if __name__ == "__main__":
    sys.exit(main())

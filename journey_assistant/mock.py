"""Deterministic fallback analysis used when no backend result is usable."""

from __future__ import annotations

from typing import Any, List, Optional

from .models import AnalysisRequest, AnalysisResult, Event, Property
from .utils import generate_id

MOCK_CONFIDENCE = 0.88


def _prop(
    name: str,
    prop_type: str,
    source: str,
    required: bool,
    example: Any,
    confidence: float,
    description: str,
) -> Property:
    return Property(
        name=name,
        type=prop_type,
        source=source,
        required=required,
        example=example,
        confidence=confidence,
        description=description,
    )


def _event(
    index: int,
    name: str,
    element_id: str,
    properties: List[Property],
    trigger: str,
    screen: str,
    confidence: float,
) -> Event:
    return Event(
        id=f"event_{index}",
        name=name,
        element_id=element_id,
        properties=properties,
        triggers=[trigger],
        sources=[screen],
        confidence=confidence,
        category="user_action",
    )


def _mock_events() -> List[Event]:
    return [
        _event(
            1,
            "feedBannerClicked",
            "promoBanner",
            [
                _prop("bannerId", "string", "on-screen", True, "banner001", 0.95, "Unique identifier for the clicked banner"),
                _prop("imageUrl", "string", "on-screen", True, "https://example.com/banner.jpg", 0.92, "URL of the banner image"),
                _prop(
                    "redirectUrl", "string", "on-screen", True, "https://example.com/contest", 0.90,
                    "Destination URL when banner is clicked",
                ),
                _prop("source", "string", "global", True, "homeScreen", 0.95, "Screen where banner was clicked"),
            ],
            "User clicks on promotional banner",
            "Home Screen",
            0.93,
        ),
        _event(
            2,
            "roundSelected",
            "matchCard",
            [
                _prop("roundId", "number", "on-screen", True, 12345, 0.95, "Unique round identifier"),
                _prop(
                    "contestJoinCount", "number", "global", False, 2, 0.88,
                    "Number of contests user has already joined for this round",
                ),
                _prop("isLineupOut", "boolean", "on-screen", True, True, 0.90, "Whether team lineups are announced"),
                _prop("roundStatus", "string", "on-screen", True, "upcoming", 0.92, "Current status of the round"),
                _prop("section", "string", "on-screen", True, "forYou", 0.85, "Section where match was selected from"),
                _prop("slotPosition", "number", "on-screen", False, 1, 0.80, "Position of match card in the list"),
                _prop("tourId", "number", "on-screen", True, 456, 0.92, "Tournament identifier"),
            ],
            "User clicks on match card",
            "Home Screen",
            0.89,
        ),
        _event(
            3,
            "matchesTabInteracted",
            "matchesTab",
            [
                _prop("matchesOption", "string", "on-screen", True, "today", 0.92, "Selected tab option"),
                _prop("previousTab", "string", "carried-forward", False, "forYou", 0.75, "Previously selected tab"),
            ],
            "User switches between match tabs",
            "Home Screen",
            0.87,
        ),
        _event(
            4,
            "seeAllMatchesClicked",
            "see_all_button",
            [
                _prop("currentSection", "string", "on-screen", True, "for_you", 0.90, "Current matches section being viewed"),
                _prop(
                    "visibleMatchesCount", "number", "on-screen", False, 5, 0.80,
                    "Number of matches visible before clicking see all",
                ),
            ],
            "User clicks see all matches",
            "Home Screen",
            0.85,
        ),
        _event(
            5,
            "walletClicked",
            "wallet_icon",
            [
                _prop("source", "string", "global", True, "home_screen", 0.95, "Screen from where wallet was accessed"),
                _prop("currentAccountBalance", "number", "global", True, 1250.50, 0.92, "Total account balance"),
                _prop("currentCashBonusBalance", "number", "global", True, 100.00, 0.92, "Cash bonus balance"),
                _prop("currentDepositBalance", "number", "global", True, 500.00, 0.92, "Deposited amount balance"),
                _prop("currentWinningsBalance", "number", "global", True, 650.50, 0.92, "Winnings balance"),
            ],
            "User clicks on wallet icon",
            "Any Screen",
            0.93,
        ),
        _event(
            6,
            "contestJoined",
            "join_button",
            [
                _prop("contestId", "string", "on-screen", True, "contest_789", 0.95, "Unique contest identifier"),
                _prop("entryFee", "number", "on-screen", True, 49, 0.95, "Contest entry fee amount"),
                _prop("roundId", "number", "carried-forward", True, 12345, 0.90, "Round ID from previous screen selection"),
                _prop("contestType", "string", "on-screen", True, "head_to_head", 0.88, "Type of contest being joined"),
                _prop("totalSpots", "number", "on-screen", False, 2, 0.85, "Total spots in the contest"),
                _prop("spotsFilled", "number", "on-screen", False, 1, 0.85, "Number of spots already filled"),
            ],
            "User successfully joins a contest",
            "Contest Selection Screen",
            0.91,
        ),
    ]


def _mock_globals() -> List[Property]:
    return [
        _prop("userId", "string", "global", True, "user_123456", 0.95, "Unique user identifier"),
        _prop("platform", "string", "global", True, "mobile_android", 0.95, "Platform identifier"),
        _prop("sessionId", "string", "global", True, "session_abc123def", 0.95, "Current session identifier"),
        _prop("appVersion", "string", "global", True, "2.1.5", 0.95, "Application version"),
        _prop("timestamp", "string", "global", True, "2025-07-18T08:30:00Z", 0.95, "Event occurrence timestamp"),
    ]


MOCK_RECOMMENDATIONS = [
    "Track source/referrer for all events to understand user journey paths",
    "Include slot_position for list items to analyze user interaction patterns",
    "Monitor balance changes after each transaction event",
    "Track contest join success/failure rates by entry fee ranges",
    "Analyze banner click-through rates by position and content type",
    "Monitor tab switching patterns to optimize content organization",
    "Track carried properties consistency across screens",
    "Ensure proper data types for mathematical operations on monetary values",
    "Include timestamp precision for time-based analytics",
    "Monitor user engagement depth by tracking see_all interactions",
]


def mock_analysis(request: Optional[AnalysisRequest] = None, *, analysis_id: str = "") -> AnalysisResult:
    """Build the fixed six-event sample result.

    ``request`` is accepted so callers can pass it through unchanged; the
    content does not depend on it.
    """

    return AnalysisResult(
        events=_mock_events(),
        global_properties=_mock_globals(),
        carried_properties={
            "homeScreen": [
                _prop(
                    "roundId", "number", "carried-forward", True, 12345, 0.90,
                    "Round ID selected from home screen, carried to contest screen",
                ),
                _prop("tourId", "number", "carried-forward", True, 456, 0.88, "Tournament ID carried from match selection"),
            ],
            "contestScreen": [
                _prop(
                    "contestId", "string", "carried-forward", True, "contest_789", 0.92,
                    "Contest ID carried to team creation screen",
                ),
                _prop("entryFee", "number", "carried-forward", True, 49, 0.90, "Entry fee amount carried to payment screen"),
            ],
        },
        recommendations=list(MOCK_RECOMMENDATIONS),
        confidence=MOCK_CONFIDENCE,
        analysis_id=analysis_id or generate_id("analysis"),
    )

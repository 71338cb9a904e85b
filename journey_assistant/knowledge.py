"""Curated domain knowledge seeded into every repository at startup."""

from __future__ import annotations

from typing import List

from .models import DomainKnowledgeItem


def _event_rule(
    item_id: str,
    event_name: str,
    description: str,
    properties: list,
    screens: List[str],
    confidence: float,
) -> DomainKnowledgeItem:
    return DomainKnowledgeItem(
        id=item_id,
        category="event_naming",
        title=f"{event_name} Event Pattern",
        description=description,
        examples=[{"eventName": event_name, "properties": properties}],
        applicable_screens=screens,
        confidence=confidence,
    )


def seed_knowledge() -> List[DomainKnowledgeItem]:
    """Return fresh copies of the curated naming and typing rules."""

    return [
        _event_rule(
            "feed_banner_pattern",
            "FeedBannerClicked",
            "When the user clicks on the feed banner",
            [
                {"name": "bannerId", "type": "long", "required": True},
                {"name": "imageUrl", "type": "varchar", "required": True},
                {"name": "redirectUrl", "type": "varchar", "required": True},
                {"name": "source", "type": "varchar", "required": True, "example": "MatchCenter"},
            ],
            ["home", "match_center"],
            0.95,
        ),
        _event_rule(
            "round_selection_pattern",
            "RoundSelected",
            "When the user clicks on a round (match card)",
            [
                {
                    "name": "contestJoinCount",
                    "type": "int",
                    "required": True,
                    "description": "total count if user has joined a contest already",
                },
                {"name": "isLineupOut", "type": "boolean", "required": True},
                {"name": "roundId", "type": "int", "required": True},
                {
                    "name": "roundStatus",
                    "type": "varchar",
                    "required": True,
                    "example": "Completed/Abandoned/Upcoming/Waiting for Review/Not Open",
                },
                {"name": "section", "type": "varchar", "required": True, "example": "For You, Today"},
                {"name": "slotPosition", "type": "int", "required": True},
                {"name": "source", "type": "varchar", "required": True, "example": "MatchCenter/MyMatches"},
                {"name": "tourId", "type": "int", "required": True},
            ],
            ["match_selection", "rounds"],
            0.95,
        ),
        _event_rule(
            "matches_interaction_pattern",
            "matchesinteracted",
            "When the user clicks on any of the upcoming matches tabs (eg: for you, today)",
            [{"name": "matchesoption", "type": "string", "required": True}],
            ["matches", "home"],
            0.9,
        ),
        _event_rule(
            "see_all_matches_pattern",
            "seeallmatches",
            "When the user clicks on see all matches on the home page",
            [],
            ["home"],
            0.9,
        ),
        _event_rule(
            "wallet_clicked_pattern",
            "walletclicked",
            "When the user clicks on the wallet icon",
            [
                {"name": "source", "type": "string", "required": True},
                {"name": "currentAccountBalance", "type": "decimal", "required": True},
                {"name": "currentCashBonusBalance", "type": "decimal", "required": True},
                {"name": "currentDepositBalance", "type": "decimal", "required": True},
                {"name": "currentWinningsBalance", "type": "decimal", "required": True},
            ],
            ["all"],
            0.95,
        ),
        _event_rule(
            "how_to_play_pattern",
            "howtoplaytapped",
            "When the user clicks on the how to play button",
            [{"name": "source", "type": "string", "required": True}],
            ["help", "onboarding"],
            0.9,
        ),
        DomainKnowledgeItem(
            id="event_naming_conventions",
            category="event_naming",
            title="Event Naming Conventions",
            description="Standard event naming patterns for product analytics",
            examples=[
                "Use descriptive camelCase or lowercase names",
                "Include action verbs (clicked, selected, tapped, interacted)",
                "Be specific about user interactions",
                "Include context when relevant (source, section, etc.)",
            ],
            applicable_screens=["all"],
            confidence=0.85,
        ),
        DomainKnowledgeItem(
            id="property_type_conventions",
            category="property_types",
            title="Property Type Conventions",
            description="Standard property types and naming for analytics properties",
            examples=[
                {"pattern": "IDs", "type": "int/long", "example": "roundId, tourId, bannerId"},
                {"pattern": "Counts", "type": "int", "example": "contestJoinCount, slotPosition"},
                {"pattern": "Balances", "type": "decimal", "example": "currentAccountBalance, currentWinningsBalance"},
                {"pattern": "Flags", "type": "boolean", "example": "isLineupOut"},
                {"pattern": "Sources/Sections", "type": "varchar/string", "example": "source, section, roundStatus"},
                {"pattern": "URLs", "type": "varchar", "example": "imageUrl, redirectUrl"},
            ],
            applicable_screens=["all"],
            confidence=0.9,
        ),
    ]


def naming_knowledge(old_name: str, new_name: str) -> DomainKnowledgeItem:
    """Knowledge item recording a human correction of an event name."""

    return DomainKnowledgeItem(
        id=f"naming_{new_name}",
        category="event_naming",
        title=f"Event Naming: {new_name}",
        description=f"Successful event name correction from {old_name} to {new_name}",
        examples=[{"old": old_name, "new": new_name}],
        applicable_screens=["all"],
        confidence=0.9,
    )

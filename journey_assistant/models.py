"""Data models for screen analysis results and the learning state around them."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import MalformedFeedback
from .utils import clamp_unit, parse_timestamp, utc_now

PROPERTY_TYPES = ("string", "number", "boolean", "object")
PROPERTY_SOURCES = ("on-screen", "carried-forward", "global")
EVENT_CATEGORIES = ("user_action", "screen_view", "system_event")
KNOWLEDGE_CATEGORIES = ("ui_patterns", "event_naming", "property_types", "business_logic")


def json_value(value: Any) -> Any:
    """Coerce ``value`` into something ``json.dumps`` accepts."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {str(k): json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_value(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _require_unit(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{label} must be a number, got {value!r}")
    if not 0.0 <= float(value) <= 1.0:
        raise ValueError(f"{label} must lie in [0, 1], got {value!r}")
    return float(value)


@dataclass(slots=True)
class ImagePayload:
    """One captured screen image handed to the remote model."""

    data: bytes
    width: int
    height: int
    captured_at: datetime = field(default_factory=utc_now)
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(slots=True)
class AnalysisRequest:
    """Images plus an optional free-text instruction for a single analysis."""

    images: List[ImagePayload] = field(default_factory=list)
    instruction: Optional[str] = None


@dataclass(slots=True)
class Property:
    """A typed attribute attached to an analytics event."""

    name: str
    type: str = "string"
    source: str = "on-screen"
    required: bool = False
    example: Any = None
    confidence: float = 0.9
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "source": self.source,
            "required": self.required,
            "example": json_value(self.example),
            "confidence": self.confidence,
        }
        if self.description is not None:
            payload["description"] = self.description
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Property":
        if not isinstance(payload, dict):
            raise ValueError(f"property must be an object, got {type(payload).__name__}")
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("property is missing a name")
        prop_type = payload.get("type", "string")
        if prop_type not in PROPERTY_TYPES:
            raise ValueError(f"property {name!r} has unknown type {prop_type!r}")
        source = payload.get("source", "on-screen")
        if source not in PROPERTY_SOURCES:
            raise ValueError(f"property {name!r} has unknown source {source!r}")
        return cls(
            name=name,
            type=prop_type,
            source=source,
            required=bool(payload.get("required", False)),
            example=payload.get("example"),
            confidence=_require_unit(payload.get("confidence", 0.9), f"property {name!r} confidence"),
            description=payload.get("description"),
        )


@dataclass(slots=True)
class Event:
    """An analytics event detected on one or more screens."""

    id: str
    name: str
    element_id: str = ""
    properties: List[Property] = field(default_factory=list)
    triggers: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    confidence: float = 0.85
    category: str = "user_action"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "elementId": self.element_id,
            "properties": [prop.to_dict() for prop in self.properties],
            "triggers": list(self.triggers),
            "sources": list(self.sources),
            "confidence": self.confidence,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Event":
        if not isinstance(payload, dict):
            raise ValueError(f"event must be an object, got {type(payload).__name__}")
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("event is missing a name")
        category = payload.get("category", "user_action")
        if category not in EVENT_CATEGORIES:
            raise ValueError(f"event {name!r} has unknown category {category!r}")
        raw_properties = payload.get("properties") or []
        if not isinstance(raw_properties, list):
            raise ValueError(f"event {name!r} properties must be a list")
        properties: List[Property] = []
        seen: set[str] = set()
        for raw in raw_properties:
            prop = Property.from_dict(raw)
            if prop.name in seen:
                raise ValueError(f"event {name!r} declares property {prop.name!r} twice")
            seen.add(prop.name)
            properties.append(prop)
        return cls(
            id=str(payload.get("id") or name),
            name=name,
            element_id=str(payload.get("elementId", "")),
            properties=properties,
            triggers=[str(t) for t in payload.get("triggers") or []],
            sources=[str(s) for s in payload.get("sources") or []],
            confidence=_require_unit(payload.get("confidence", 0.85), f"event {name!r} confidence"),
            category=category,
        )


@dataclass(slots=True)
class AnalysisResult:
    """Structured analytics specification produced for one analysis request."""

    events: List[Event] = field(default_factory=list)
    global_properties: List[Property] = field(default_factory=list)
    carried_properties: Dict[str, List[Property]] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    confidence: float = 0.0
    analysis_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysisId": self.analysis_id,
            "events": [event.to_dict() for event in self.events],
            "globalProperties": [prop.to_dict() for prop in self.global_properties],
            "carriedProperties": {
                screen: [prop.to_dict() for prop in props]
                for screen, props in self.carried_properties.items()
            },
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
        }

    def to_json(self, *, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            events=[Event.from_dict(raw) for raw in payload.get("events") or []],
            global_properties=[Property.from_dict(raw) for raw in payload.get("globalProperties") or []],
            carried_properties={
                str(screen): [Property.from_dict(raw) for raw in props or []]
                for screen, props in (payload.get("carriedProperties") or {}).items()
            },
            recommendations=[str(r) for r in payload.get("recommendations") or []],
            confidence=clamp_unit(payload.get("confidence", 0.0)),
            analysis_id=str(payload.get("analysisId", "")),
        )


@dataclass(slots=True)
class Pattern:
    """Reinforced record of which events and properties proved correct for a category."""

    id: str
    screen_type: str
    common_events: List[str] = field(default_factory=list)
    successful_properties: List[Property] = field(default_factory=list)
    confidence_score: float = 0.5
    usage_count: int = 0
    last_used: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "screenType": self.screen_type,
            "commonEvents": list(self.common_events),
            "successfulProperties": [prop.to_dict() for prop in self.successful_properties],
            "confidenceScore": self.confidence_score,
            "usageCount": self.usage_count,
            "lastUsed": self.last_used.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Pattern":
        return cls(
            id=str(payload["id"]),
            screen_type=str(payload.get("screenType", "")),
            common_events=[str(name) for name in payload.get("commonEvents") or []],
            successful_properties=[Property.from_dict(raw) for raw in payload.get("successfulProperties") or []],
            confidence_score=clamp_unit(payload.get("confidenceScore", 0.5)),
            usage_count=int(payload.get("usageCount", 0)),
            last_used=parse_timestamp(payload["lastUsed"]) if payload.get("lastUsed") else utc_now(),
        )


@dataclass(slots=True)
class DomainKnowledgeItem:
    """Curated or learned rule about naming and typing conventions."""

    id: str
    category: str
    title: str
    description: str
    examples: List[Any] = field(default_factory=list)
    applicable_screens: List[str] = field(default_factory=list)
    confidence: float = 0.9

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "examples": json_value(self.examples),
            "applicableScreens": list(self.applicable_screens),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DomainKnowledgeItem":
        category = payload.get("category")
        if category not in KNOWLEDGE_CATEGORIES:
            raise ValueError(f"knowledge item has unknown category {category!r}")
        examples = payload.get("examples") or []
        if not isinstance(examples, list):
            raise ValueError("knowledge examples must be a list")
        return cls(
            id=str(payload["id"]),
            category=category,
            title=str(payload.get("title", "")),
            description=str(payload.get("description", "")),
            examples=examples,
            applicable_screens=[str(screen) for screen in payload.get("applicableScreens") or []],
            confidence=_require_unit(payload.get("confidence", 0.9), "knowledge confidence"),
        )


@dataclass(slots=True)
class FeedbackImprovements:
    property_corrections: Dict[str, List[Property]] = field(default_factory=dict)
    event_name_changes: Dict[str, str] = field(default_factory=dict)
    category_corrections: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "propertyCorrections": {
                event_id: [prop.to_dict() for prop in props]
                for event_id, props in self.property_corrections.items()
            },
            "eventNameChanges": dict(self.event_name_changes),
            "categoryCorrections": dict(self.category_corrections),
        }

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "FeedbackImprovements":
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise ValueError("improvements must be an object")
        corrections = payload.get("propertyCorrections") or {}
        name_changes = payload.get("eventNameChanges") or {}
        categories = payload.get("categoryCorrections") or {}
        for label, mapping in (
            ("propertyCorrections", corrections),
            ("eventNameChanges", name_changes),
            ("categoryCorrections", categories),
        ):
            if not isinstance(mapping, dict):
                raise ValueError(f"improvements.{label} must be an object")
        for old, new in name_changes.items():
            if not isinstance(new, str) or not new.strip() or not str(old).strip():
                raise ValueError(f"event name change {old!r} -> {new!r} is incomplete")
        for event_id, category in categories.items():
            if category not in EVENT_CATEGORIES:
                raise ValueError(f"category correction for {event_id!r} has unknown category {category!r}")
        return cls(
            property_corrections={
                str(event_id): [Property.from_dict(raw) for raw in props or []]
                for event_id, props in corrections.items()
            },
            event_name_changes={str(old): new for old, new in name_changes.items()},
            category_corrections={str(event_id): category for event_id, category in categories.items()},
        )


@dataclass(slots=True)
class Feedback:
    """Human corrections submitted for a previous analysis. Append-only."""

    analysis_id: str
    corrected_events: List[Event] = field(default_factory=list)
    comments: str = ""
    confidence: float = 0.5
    timestamp: datetime = field(default_factory=utc_now)
    improvements: FeedbackImprovements = field(default_factory=FeedbackImprovements)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysisId": self.analysis_id,
            "correctedEvents": [event.to_dict() for event in self.corrected_events],
            "comments": self.comments,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
            "improvements": self.improvements.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "Feedback":
        """Validate and build a feedback record, raising ``MalformedFeedback``."""

        if not isinstance(payload, dict):
            raise MalformedFeedback("feedback must be a JSON object")
        analysis_id = payload.get("analysisId")
        if not isinstance(analysis_id, str) or not analysis_id.strip():
            raise MalformedFeedback("feedback.analysisId is required")
        raw_events = payload.get("correctedEvents", [])
        if not isinstance(raw_events, list):
            raise MalformedFeedback("feedback.correctedEvents must be a list")
        comments = payload.get("comments", payload.get("userComments", ""))
        if comments is None:
            comments = ""
        if not isinstance(comments, str):
            raise MalformedFeedback("feedback.comments must be text")
        try:
            confidence = _require_unit(payload.get("confidence"), "feedback.confidence")
            events = [Event.from_dict(raw) for raw in raw_events]
            improvements = FeedbackImprovements.from_dict(payload.get("improvements"))
            timestamp = parse_timestamp(payload["timestamp"]) if payload.get("timestamp") else utc_now()
        except (TypeError, ValueError) as exc:
            raise MalformedFeedback(f"feedback for {analysis_id!r} is invalid: {exc}") from exc
        return cls(
            analysis_id=analysis_id,
            corrected_events=events,
            comments=comments,
            confidence=confidence,
            timestamp=timestamp,
            improvements=improvements,
        )


@dataclass(slots=True)
class VectorDocument:
    """Text indexed for approximate similarity lookup."""

    doc_id: str
    content: str
    metadata: Dict[str, Any]
    embedding: List[float]

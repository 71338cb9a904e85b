"""Self-healing parser that recovers analysis payloads from free-form model text.

Model responses are supposed to be JSON but routinely arrive wrapped in
markdown fences, prefixed with prose, truncated, or with JavaScript-style
syntax (bare keys, trailing commas, single quotes). The parser runs an ordered
list of extraction strategies over the text; each candidate is decoded as-is
and, failing that, after a chain of syntactic repairs. The first candidate
that decodes into one of the accepted response shapes wins.

Nothing in this module raises on bad input: ``parse_response`` returns either
a :class:`ParsedResponse` or a :class:`ParseFailure`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .models import (
    EVENT_CATEGORIES,
    PROPERTY_SOURCES,
    AnalysisResult,
    Event,
    Property,
    json_value,
)
from .utils import clamp_unit

logger = logging.getLogger(__name__)

SHAPE_SCREEN_LIST = "screen_list"
SHAPE_SCREENS_OBJECT = "screens_object"
SHAPE_EVENTS_OBJECT = "events_object"

DEFAULT_EVENT_CONFIDENCE = 0.85
DEFAULT_RESULT_CONFIDENCE = 0.85
STRUCTURED_PROPERTY_CONFIDENCE = 0.9
LEGACY_PROPERTY_CONFIDENCE = 0.8
GLOBAL_PROPERTY_CONFIDENCE = 0.95
CARRIED_PROPERTY_CONFIDENCE = 0.9

DEFAULT_RECOMMENDATIONS = [
    "Track all UI element interactions for comprehensive user behavior analysis",
    "Monitor event types to understand interaction patterns",
    "Analyze additional properties to identify optimization opportunities",
]

_TYPE_ALIASES = {
    "string": "string",
    "str": "string",
    "varchar": "string",
    "text": "string",
    "char": "string",
    "date": "string",
    "datetime": "string",
    "timestamp": "string",
    "enum": "string",
    "number": "number",
    "int": "number",
    "integer": "number",
    "long": "number",
    "float": "number",
    "double": "number",
    "decimal": "number",
    "numeric": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "object": "object",
    "map": "object",
    "dict": "object",
    "json": "object",
    "array": "object",
    "list": "object",
}

_FENCED_BLOCK = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
_FENCE_MARKER = re.compile(r"```[A-Za-z0-9_-]*")
_FIRST_OBJECT = re.compile(r"\{[\s\S]*?\}(?=\s*(?:```|$|[^\s}]))")
_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_SINGLE_QUOTED = re.compile(r"'((?:[^'\\\n]|\\.)*)'")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_$][\w$-]*)(\s*:)")
_BARE_VALUE = re.compile(r"(:\s*)([^\s\"'\[\]{},][^\"\[\]{},]*?)(\s*)(?=[,}\]])")
_JSON_LITERAL = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?|true|false|null")
_PYTHON_LITERALS = {"True": "true", "False": "false", "None": "null"}


@dataclass(slots=True)
class ParseFailure:
    """Raw text could not be recovered by any extraction or repair strategy."""

    reason: str
    excerpt: str = ""


@dataclass(slots=True)
class ParsedResponse:
    """A decoded response tagged with the shape it matched.

    ``blocks`` holds ``(screen_name, raw_events)`` pairs in document order;
    ``document`` is the top-level object (empty for the screen-list shape).
    """

    shape: str
    blocks: List[Tuple[Optional[str], List[Any]]]
    document: Dict[str, Any] = field(default_factory=dict)
    strategy: str = field(default="", compare=False)

    @property
    def raw_events(self) -> List[Tuple[Optional[str], Any]]:
        return [(screen, raw) for screen, events in self.blocks for raw in events]


ParseOutcome = Union[ParsedResponse, ParseFailure]
Strategy = Callable[[str], Optional[str]]


# ----------------------------------------------------------------------
# Extraction strategies
# ----------------------------------------------------------------------


def strip_code_fences(text: str) -> str:
    return _FENCE_MARKER.sub("", text).strip()


def fenced_block(text: str) -> Optional[str]:
    match = _FENCED_BLOCK.search(text)
    if not match:
        return None
    body = match.group(1).strip()
    return body or None


def _scan_balanced(text: str, start: int, open_char: str, close_char: str) -> Optional[str]:
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def balanced_region(text: str) -> Optional[str]:
    """Return the first balanced ``[...]`` or ``{...}`` region, whichever opens first."""

    array_start = text.find("[")
    object_start = text.find("{")
    if array_start != -1 and (object_start == -1 or array_start < object_start):
        return _scan_balanced(text, array_start, "[", "]")
    if object_start != -1:
        return _scan_balanced(text, object_start, "{", "}")
    return None


def balanced_object(text: str) -> Optional[str]:
    object_start = text.find("{")
    if object_start == -1:
        return None
    return _scan_balanced(text, object_start, "{", "}")


def first_object_match(text: str) -> Optional[str]:
    match = _FIRST_OBJECT.search(text)
    return match.group(0) if match else None


def outer_braces(text: str) -> Optional[str]:
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last <= first:
        return None
    return text[first : last + 1]


def key_value_lines(text: str) -> Optional[str]:
    lines = [line for line in text.splitlines() if line.strip().startswith("{") or ":" in line]
    if not lines:
        return None
    return "\n".join(lines).strip()


def whole_text(text: str) -> Optional[str]:
    return text or None


EXTRACTION_STRATEGIES: List[Tuple[str, Strategy]] = [
    ("balanced_region", balanced_region),
    ("balanced_object", balanced_object),
    ("first_object_match", first_object_match),
    ("outer_braces", outer_braces),
    ("key_value_lines", key_value_lines),
    ("whole_text", whole_text),
]


# ----------------------------------------------------------------------
# Syntactic repair
# ----------------------------------------------------------------------


def _outside_strings(text: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to every stretch of ``text`` outside double-quoted literals."""

    parts: List[str] = []
    cursor = 0
    for match in _STRING_LITERAL.finditer(text):
        parts.append(transform(text[cursor : match.start()]))
        parts.append(match.group(0))
        cursor = match.end()
    parts.append(transform(text[cursor:]))
    return "".join(parts)


def _requote_single(segment: str) -> str:
    return _SINGLE_QUOTED.sub(lambda m: json.dumps(m.group(1).replace("\\'", "'")), segment)


def _drop_trailing_commas(segment: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", segment)


def _quote_bare_keys(segment: str) -> str:
    return _BARE_KEY.sub(lambda m: f'{m.group(1)}"{m.group(2)}"{m.group(3)}', segment)


def _quote_bare_value(match: "re.Match[str]") -> str:
    value = match.group(2).strip()
    value = _PYTHON_LITERALS.get(value, value)
    if _JSON_LITERAL.fullmatch(value):
        return f"{match.group(1)}{value}{match.group(3)}"
    return f"{match.group(1)}{json.dumps(value)}{match.group(3)}"


def _quote_bare_values(segment: str) -> str:
    return _BARE_VALUE.sub(_quote_bare_value, segment)


def close_truncated(text: str) -> str:
    """Close brackets and strings left open by a truncated response."""

    stack: List[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "[{":
            stack.append("]" if char == "[" else "}")
        elif char in "]}" and stack and stack[-1] == char:
            stack.pop()
    if not stack and not in_string:
        return text
    repaired = text + '"' if in_string else text
    repaired = repaired.rstrip().rstrip(",")
    return repaired + "".join(reversed(stack))


def repair_json(text: str) -> str:
    """Apply the lenient syntax fixes in order. Pure; never raises."""

    repaired = _outside_strings(text, _requote_single)
    repaired = close_truncated(repaired)
    for fix in (_drop_trailing_commas, _quote_bare_keys, _quote_bare_values):
        repaired = _outside_strings(repaired, fix)
    return repaired


def _decode(candidate: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(candidate)
    except (ValueError, RecursionError):
        return False, None


# ----------------------------------------------------------------------
# Shape classification
# ----------------------------------------------------------------------


def _screen_blocks(items: List[Any]) -> List[Tuple[Optional[str], List[Any]]]:
    blocks: List[Tuple[Optional[str], List[Any]]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        events = item.get("events")
        if not isinstance(events, list):
            continue
        screen = item.get("screen")
        blocks.append((str(screen) if screen else None, events))
    return blocks


def classify(document: Any) -> Optional[ParsedResponse]:
    """Tag a decoded document with its response shape, or ``None`` if unrecognised."""

    if isinstance(document, list):
        blocks = _screen_blocks(document)
        if blocks:
            return ParsedResponse(shape=SHAPE_SCREEN_LIST, blocks=blocks)
        return None
    if not isinstance(document, dict):
        return None
    screens = document.get("screens")
    if isinstance(screens, list):
        return ParsedResponse(shape=SHAPE_SCREENS_OBJECT, blocks=_screen_blocks(screens), document=document)
    events = document.get("events")
    if isinstance(events, list):
        return ParsedResponse(shape=SHAPE_EVENTS_OBJECT, blocks=[(None, events)], document=document)
    return None


def parse_response(text: Any) -> ParseOutcome:
    """Recover a structured payload from raw model text."""

    if not isinstance(text, str) or not text.strip():
        return ParseFailure(reason="empty response")

    fenced = fenced_block(text)
    cleaned = strip_code_fences(text)
    strategies: List[Tuple[str, Strategy]] = []
    if fenced is not None:
        strategies.append(("fenced_block", lambda _text: fenced))
    strategies.extend(EXTRACTION_STRATEGIES)

    tried: set[str] = set()
    for label, strategy in strategies:
        candidate = strategy(cleaned)
        if not candidate or candidate in tried:
            continue
        tried.add(candidate)
        for repaired in (False, True):
            body = repair_json(candidate) if repaired else candidate
            ok, document = _decode(body)
            if not ok:
                continue
            parsed = classify(document)
            if parsed is None:
                break
            parsed.strategy = f"{label}+repair" if repaired else label
            logger.debug("Recovered %s payload via %s", parsed.shape, parsed.strategy)
            return parsed

    excerpt = cleaned if len(cleaned) <= 200 else cleaned[:197].rstrip() + "..."
    return ParseFailure(reason="no candidate decoded into a known response shape", excerpt=excerpt)


# ----------------------------------------------------------------------
# Mapping onto AnalysisResult
# ----------------------------------------------------------------------


def normalize_type(raw: Any) -> str:
    if isinstance(raw, str):
        token = raw.strip().lower().split("(")[0].strip()
        return _TYPE_ALIASES.get(token, "string")
    return "string"


def infer_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (dict, list)):
        return "object"
    return "string"


def _as_bool(raw: Any, default: bool = False) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in {"true", "yes", "1", "required", "mandatory"}:
            return True
        if lowered in {"false", "no", "0", "optional"}:
            return False
    if isinstance(raw, (int, float)):
        return bool(raw)
    return default


def _as_confidence(raw: Any, default: float) -> float:
    if isinstance(raw, bool):
        return default
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return default
    if isinstance(raw, (int, float)):
        return clamp_unit(raw)
    return default


def _as_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _build_property(
    raw: Any,
    *,
    source: Optional[str] = None,
    confidence: float = STRUCTURED_PROPERTY_CONFIDENCE,
) -> Optional[Property]:
    if not isinstance(raw, dict):
        return None
    name = _as_text(raw.get("name"))
    if name is None:
        return None
    resolved_source = source or raw.get("source")
    if resolved_source not in PROPERTY_SOURCES:
        resolved_source = "on-screen"
    return Property(
        name=name,
        type=normalize_type(raw.get("type")),
        source=resolved_source,
        required=_as_bool(raw.get("required")),
        example=json_value(raw.get("example")),
        confidence=confidence,
        description=_as_text(raw.get("description")),
    )


def _dedupe(properties: List[Property]) -> List[Property]:
    seen: set[str] = set()
    unique: List[Property] = []
    for prop in properties:
        if prop.name in seen:
            continue
        seen.add(prop.name)
        unique.append(prop)
    return unique


def _legacy_properties(raw: Dict[str, Any]) -> List[Property]:
    properties: List[Property] = []
    element = raw.get("element")
    if element is not None:
        properties.append(
            Property(
                name="elementText",
                type="string",
                source="on-screen",
                required=True,
                example=json_value(element),
                confidence=STRUCTURED_PROPERTY_CONFIDENCE,
                description="Text or description of the UI element",
            )
        )
    event_type = raw.get("eventType")
    if event_type is not None:
        properties.append(
            Property(
                name="eventType",
                type="string",
                source="on-screen",
                required=True,
                example=json_value(event_type),
                confidence=STRUCTURED_PROPERTY_CONFIDENCE,
                description="Type of user interaction",
            )
        )
    additional = raw.get("additionalProperties")
    if isinstance(additional, dict):
        for key, value in additional.items():
            properties.append(
                Property(
                    name=str(key),
                    type=infer_type(value),
                    source="on-screen",
                    required=False,
                    example=json_value(value),
                    confidence=LEGACY_PROPERTY_CONFIDENCE,
                    description=f"Additional property: {key}",
                )
            )
    return properties


def _build_event(raw: Dict[str, Any], *, index: int, screen: Optional[str]) -> Event:
    name = _as_text(raw.get("name")) or _as_text(raw.get("eventName")) or f"event_{index}"
    raw_properties = raw.get("properties")
    if isinstance(raw_properties, list):
        properties = [prop for prop in (_build_property(item) for item in raw_properties) if prop]
    else:
        properties = _legacy_properties(raw)

    triggers = raw.get("triggers")
    if isinstance(triggers, list) and triggers:
        trigger_list = [str(t) for t in triggers]
    else:
        action = _as_text(raw.get("eventType")) or "interaction"
        element = _as_text(raw.get("element")) or "element"
        trigger_list = [f"User performs {action} on {element}"]

    category = raw.get("category")
    if category not in EVENT_CATEGORIES:
        category = "user_action"

    return Event(
        id=f"event_{index}",
        name=name,
        element_id=_as_text(raw.get("selector")) or _as_text(raw.get("elementId")) or f"element_{index}",
        properties=_dedupe(properties),
        triggers=trigger_list,
        sources=[_as_text(raw.get("screen")) or screen or "Mobile App Screen"],
        confidence=_as_confidence(raw.get("confidence"), DEFAULT_EVENT_CONFIDENCE),
        category=category,
    )


def default_global_properties() -> List[Property]:
    return [
        Property(
            name="userId",
            type="string",
            source="global",
            required=True,
            example="user_123456",
            confidence=GLOBAL_PROPERTY_CONFIDENCE,
            description="Unique user identifier",
        ),
        Property(
            name="sessionId",
            type="string",
            source="global",
            required=True,
            example="session_abc123",
            confidence=GLOBAL_PROPERTY_CONFIDENCE,
            description="Current session identifier",
        ),
        Property(
            name="timestamp",
            type="string",
            source="global",
            required=True,
            example="2025-07-18T08:30:00Z",
            confidence=GLOBAL_PROPERTY_CONFIDENCE,
            description="Event occurrence timestamp",
        ),
    ]


def build_result(parsed: ParsedResponse, *, analysis_id: str = "") -> AnalysisResult:
    """Map a classified payload onto an :class:`AnalysisResult` with defaults filled in."""

    events: List[Event] = []
    for screen, raw in parsed.raw_events:
        if not isinstance(raw, dict):
            continue
        events.append(_build_event(raw, index=len(events) + 1, screen=screen))

    document = parsed.document
    raw_globals = document.get("globalProperties")
    if isinstance(raw_globals, list):
        global_properties = _dedupe(
            [
                prop
                for prop in (
                    _build_property(item, source="global", confidence=GLOBAL_PROPERTY_CONFIDENCE)
                    for item in raw_globals
                )
                if prop
            ]
        )
    else:
        global_properties = default_global_properties()

    carried: Dict[str, List[Property]] = {}
    raw_carried = document.get("carriedProperties")
    if isinstance(raw_carried, dict):
        for screen_id, items in raw_carried.items():
            if not isinstance(items, list):
                continue
            carried[str(screen_id)] = _dedupe(
                [
                    prop
                    for prop in (
                        _build_property(item, source="carried-forward", confidence=CARRIED_PROPERTY_CONFIDENCE)
                        for item in items
                    )
                    if prop
                ]
            )

    raw_recommendations = document.get("recommendations")
    if isinstance(raw_recommendations, list) and raw_recommendations:
        recommendations = [str(item) for item in raw_recommendations]
    else:
        recommendations = list(DEFAULT_RECOMMENDATIONS)

    return AnalysisResult(
        events=events,
        global_properties=global_properties,
        carried_properties=carried,
        recommendations=recommendations,
        confidence=_as_confidence(document.get("confidence"), DEFAULT_RESULT_CONFIDENCE),
        analysis_id=analysis_id,
    )


def parse_analysis(text: Any, *, analysis_id: str = "") -> Union[AnalysisResult, ParseFailure]:
    outcome = parse_response(text)
    if isinstance(outcome, ParseFailure):
        return outcome
    return build_result(outcome, analysis_id=analysis_id)

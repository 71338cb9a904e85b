"""Journey Assistant core package: screen analysis with a self-improving retrieval loop."""

from .config import AssistantConfig
from .errors import BackendError, JourneyAssistantError, MalformedFeedback, PersistenceFailure
from .images import from_pil, load_image
from .models import AnalysisRequest, AnalysisResult, Event, Feedback, ImagePayload, Property
from .parser import ParseFailure, parse_analysis, parse_response
from .pipeline import JourneyAssistant
from .quality import QualityAssessment, QualityAssessor
from .repository import PatternRepository, RetentionPolicy

__all__ = [
    "JourneyAssistant",
    "AssistantConfig",
    "PatternRepository",
    "RetentionPolicy",
    "QualityAssessor",
    "QualityAssessment",
    "AnalysisRequest",
    "AnalysisResult",
    "Event",
    "Property",
    "Feedback",
    "ImagePayload",
    "ParseFailure",
    "parse_analysis",
    "parse_response",
    "load_image",
    "from_pil",
    "JourneyAssistantError",
    "BackendError",
    "PersistenceFailure",
    "MalformedFeedback",
]

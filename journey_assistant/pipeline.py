"""End-to-end orchestration for Journey Assistant."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, List, Optional, Union

from .config import AssistantConfig
from .context import ContextEnhancer
from .errors import BackendError, PersistenceFailure
from .learning import FeedbackLearner
from .mock import mock_analysis
from .models import AnalysisRequest, AnalysisResult, Feedback, ImagePayload
from .parser import ParseFailure, parse_analysis
from .prompts import BASE_PROMPT, analysis_instructions
from .providers import AnalysisBackend, Opener, select_backend
from .quality import QualityAssessment, QualityAssessor
from .rag import RetrievalEngine
from .reporting import analysis_report, learning_report, quality_report
from .repository import PatternRepository, RetentionPolicy
from .store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from .utils import generate_id

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


def _open_store(db_path: str) -> KeyValueStore:
    if db_path == ":memory:":
        return MemoryKeyValueStore()
    try:
        return SQLiteKeyValueStore(db_path)
    except PersistenceFailure as exc:
        logger.warning("Learning state will not survive restarts: %s", exc)
        return MemoryKeyValueStore()


class JourneyAssistant:
    """Coordinates retrieval, the remote model call, parsing and learning."""

    def __init__(
        self,
        config: AssistantConfig | None = None,
        *,
        backend: AnalysisBackend | None = None,
        repository: PatternRepository | None = None,
        retention: RetentionPolicy | None = None,
        quality: QualityAssessor | None = None,
        opener: Optional[Opener] = None,
    ) -> None:
        self.config = config or AssistantConfig.from_env()
        self.repository = repository or PatternRepository(
            _open_store(self.config.db_path), retention=retention
        )
        self.retrieval = RetrievalEngine(self.repository)
        self.enhancer = ContextEnhancer(self.retrieval)
        self.learner = FeedbackLearner(self.repository)
        self.quality = quality or QualityAssessor()
        self._opener = opener
        self.backend = backend if backend is not None else select_backend(self.config, opener=opener)
        if self.backend is None:
            logger.info("No analysis backend configured; analyses will use the sample result")

    def analyze(
        self,
        request: AnalysisRequest,
        *,
        analysis_type: str = "events",
        cancel_event: threading.Event | None = None,
    ) -> AnalysisResult:
        """Produce an analysis for ``request``. Never raises.

        Any backend failure, timeout, cancellation or unparseable response
        yields the deterministic sample result instead.
        """

        analysis_id = generate_id("analysis")
        backend = self.backend
        if backend is None:
            return mock_analysis(request, analysis_id=analysis_id)
        try:
            with self.learner.lock:
                context = self.retrieval.retrieve_context(request, analysis_type)
            system_prompt = self.enhancer.render_prompt(BASE_PROMPT, context)
            user_prompt = analysis_instructions(len(request.images), request.instruction)
            text = self._call_backend(backend, system_prompt, user_prompt, request.images, cancel_event)
            outcome = parse_analysis(text, analysis_id=analysis_id)
            if isinstance(outcome, ParseFailure):
                logger.warning("Could not parse %s response (%s): %r", backend.name, outcome.reason, outcome.excerpt)
                return mock_analysis(request, analysis_id=analysis_id)
            if self.config.enhance_results:
                outcome = self.enhancer.enhance_result(outcome, request, context)
            logger.info("Analysis %s produced %d events", analysis_id, len(outcome.events))
            return outcome
        except BackendError as exc:
            logger.warning("Analysis backend %s failed (status %s): %s", exc.provider, exc.status, exc.detail)
        except Exception:  # pragma: no cover - runtime safeguard
            logger.exception("Unexpected failure during analysis %s", analysis_id)
        return mock_analysis(request, analysis_id=analysis_id)

    def _call_backend(
        self,
        backend: AnalysisBackend,
        system_prompt: str,
        user_prompt: str,
        images: List[ImagePayload],
        cancel_event: threading.Event | None,
    ) -> str:
        name = backend.name
        if cancel_event is not None and cancel_event.is_set():
            raise BackendError(name, "cancelled before dispatch")
        deadline = time.monotonic() + self.config.timeout
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="journey-backend")
        try:
            future = executor.submit(backend.complete, system_prompt, user_prompt, images)
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    future.cancel()
                    raise BackendError(name, f"timed out after {self.config.timeout:g}s")
                try:
                    return future.result(timeout=min(_POLL_INTERVAL, remaining))
                except FutureTimeout:
                    if cancel_event is not None and cancel_event.is_set():
                        future.cancel()
                        raise BackendError(name, "cancelled") from None
        finally:
            # A hung call keeps its worker thread; the caller must not wait for it.
            executor.shutdown(wait=False, cancel_futures=True)

    def submit_feedback(self, feedback: Union[Feedback, Dict[str, Any]]) -> None:
        self.learner.ingest_feedback(feedback)

    def assess(self, result: AnalysisResult) -> QualityAssessment:
        return self.quality.assess(result)

    def test_connection(self, provider: Optional[str] = None) -> bool:
        backend = self.backend
        if provider is not None and (backend is None or backend.name != provider):
            backend = select_backend(self.config, provider, opener=self._opener)
        if backend is None:
            return False
        return backend.test_connection()

    def analysis_report_text(self, result: AnalysisResult) -> str:
        return analysis_report(result).render_text()

    def quality_report_text(self, result: AnalysisResult) -> str:
        return quality_report(self.assess(result)).render_text()

    def learning_report_text(self) -> str:
        return learning_report(self.repository).render_text()

    def close(self) -> None:
        self.repository.index.close()
        close_store = getattr(self.repository.store, "close", None)
        if callable(close_store):
            close_store()

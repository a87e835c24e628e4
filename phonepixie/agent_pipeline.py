"""PhonePixie request orchestration.

Role:
    Sequences the request pipeline and shapes the HTTP-facing outcome. It owns the
    PipelineContext contract and the mapping from pipeline states to status codes.

State machine:
    Start -> RateLimit -> Validate -> SafetyCheck -> {Refused | Classify}
          -> {RefusedByIntent | Query -> Synthesize -> Respond}
    RateLimited (429) and Invalid (400) are decided before any pipeline work.
    Any unexpected exception inside the pipeline is an InternalFault (500).

Step contracts:
    Safety Check:
        Reads message; sets verdict and, when blocked, refusal_message.
    Classify:
        Reads message + verdict; sets intent and, for refusal intents, refusal_message.
    Query:
        Reads intent + compare_phones + history; sets candidates/additional.
    Synthesize:
        Reads intent + candidates; sets response.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from . import safety_gate
from .catalog_store import CatalogStore
from .config import Settings
from .errors import (
    GENERIC_ERROR_MESSAGE,
    INVALID_REQUEST_MESSAGE,
    RATE_LIMIT_MESSAGE,
    CatalogUnavailableError,
    RequestValidationFailed,
)
from .gemini_client import TextGenerator
from .intent_classifier import COMPARE_RE, IntentClassifier
from .models import CatalogEntry, ChatRequest, ChatResponse, ConversationTurn, QueryIntent
from .query_engine import EMPTY_CANDIDATES, CandidateSet, CatalogQueryEngine
from .rate_limiter import RateLimitDecision, RateLimitStore
from .response_synthesizer import ResponseSynthesizer, SynthesizedResponse
from .step_runtime import PipelineStep, StepRunner
from .utils import normalize_text, truncate_for_log

logger = logging.getLogger("phonepixie.agent")

CATALOG_INTENTS = {"search", "compare", "details"}
COMPARE_OVERRIDABLE = {"search", "compare", "details", "general"}
FOLLOWUP_RE = re.compile(r"\b(them|these|those|both|all of them|the two|the three|above)\b")


@dataclass
class PipelineContext:
    """Mutable context passed through each pipeline step."""
    request_id: str
    message: str
    compare_phones: Optional[List[CatalogEntry]] = None
    history: List[ConversationTurn] = field(default_factory=list)
    verdict: safety_gate.SafetyVerdict = safety_gate.ALLOWED
    intent: Optional[QueryIntent] = None
    candidates: CandidateSet = EMPTY_CANDIDATES
    additional: Optional[CandidateSet] = None
    response: Optional[SynthesizedResponse] = None
    refusal_message: str = ""
    state: str = "start"

    @property
    def refused(self) -> bool:
        return bool(self.refusal_message)


@dataclass(frozen=True)
class PipelineOutcome:
    """HTTP-ready result: status code, JSON body, and the rate-limit decision."""
    status_code: int
    body: Dict[str, Any]
    rate_limit: Optional[RateLimitDecision] = None

    def headers(self) -> Dict[str, str]:
        return self.rate_limit.headers() if self.rate_limit else {}


def error_body(message: str) -> Dict[str, Any]:
    return ChatResponse(message=message, type="error").model_dump(exclude_none=True)


def parse_request(payload: Any) -> ChatRequest:
    """Purpose: Validate a decoded JSON body into a ChatRequest.
    Inputs/Outputs: Input is any decoded JSON value; output is a ChatRequest.
    Side Effects / State: None.
    Dependencies: pydantic validation of ChatRequest.
    Failure Modes: Non-object bodies, a missing or non-string message, or malformed
        comparePhones/history raise RequestValidationFailed. An empty message is valid.
    If Removed: Malformed requests would reach classification.
    Testing Notes: {"message": 5} -> RequestValidationFailed; {"message": ""} -> ok.
    """
    # Shape check only; content decisions belong to the pipeline.
    if not isinstance(payload, dict):
        raise RequestValidationFailed("request body must be a JSON object")
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationFailed(f"invalid request fields count={exc.error_count()}") from exc


def _is_refused(context: object) -> bool:
    return isinstance(context, PipelineContext) and context.refused


def latest_assistant_phones(history: List[ConversationTurn]) -> List[CatalogEntry]:
    """Phones attached to the most recent assistant turn, if any."""
    for turn in reversed(history):
        if turn.role == "assistant":
            return list(turn.phones or [])
    return []


def is_compare_followup(message: str, history: List[ConversationTurn]) -> bool:
    """True for "compare them" requests that refer back to the previous answer's phones."""
    normalized = normalize_text(message)
    if not (COMPARE_RE.search(normalized) and FOLLOWUP_RE.search(normalized)):
        return False
    return len(latest_assistant_phones(history)) >= 2


class PhonePixieAgent:
    """Request orchestrator: rate limit, validate, then the four pipeline stages."""

    def __init__(
        self,
        catalog: CatalogStore,
        generator: Optional[TextGenerator],
        settings: Settings,
        rate_limiter: RateLimitStore,
    ) -> None:
        """Purpose: Wire components and build the ordered step runner.
        Inputs/Outputs: Inputs are the catalog store, an optional generation client,
            settings, and the injected rate-limit store; no return value.
        Side Effects / State: None beyond holding references.
        Dependencies: IntentClassifier, CatalogQueryEngine, ResponseSynthesizer, StepRunner.
        Failure Modes: None at init.
        If Removed: The chat endpoint has nothing to run.
        Testing Notes: Build with a fake generator and InMemoryRateLimitStore.
        """
        # Components share the generator seam; only the rate limiter holds mutable state.
        self._catalog = catalog
        self._rate_limiter = rate_limiter
        self._classifier = IntentClassifier(generator, settings.prompts_dir)
        self._engine = CatalogQueryEngine(
            catalog,
            candidate_cap=settings.candidate_cap,
            compare_cap=settings.compare_cap,
            additional_cap=settings.additional_cap,
        )
        self._synthesizer = ResponseSynthesizer(generator, settings.prompts_dir)
        self._runner = StepRunner(
            [
                PipelineStep("safety_check", self._step_safety_check),
                PipelineStep("classify", self._step_classify, skip_if=_is_refused),
                PipelineStep("query", self._step_query, skip_if=_is_refused),
                PipelineStep("synthesize", self._step_synthesize, skip_if=_is_refused),
            ]
        )

    def handle_request(self, payload: Any, client_key: str) -> PipelineOutcome:
        """Purpose: Run one chat request end to end and map it to an HTTP outcome.
        Inputs/Outputs: Inputs are the decoded JSON body and the client key; output is
            a PipelineOutcome (200/400/429/500).
        Side Effects / State: Increments the client's rate-limit window; logs.
        Dependencies: RateLimitStore.check, parse_request, run().
        Failure Modes: Unexpected exceptions become the fixed 500 body and are logged
            with a traceback; no diagnostic detail reaches the body.
        If Removed: The route would need to reimplement the status mapping.
        Testing Notes: The (limit+1)-th call returns 429 without running the pipeline.
        """
        # Rate limit before anything else, then shape validation.
        decision = self._rate_limiter.check(client_key)
        if not decision.allowed:
            return PipelineOutcome(429, error_body(RATE_LIMIT_MESSAGE), decision)

        try:
            request = parse_request(payload)
        except RequestValidationFailed as exc:
            logger.info("client=%s rejected=%s", client_key, exc)
            return PipelineOutcome(exc.status_code, error_body(INVALID_REQUEST_MESSAGE), decision)

        try:
            context = self.run(request)
        except Exception:
            logger.exception("client=%s internal fault", client_key)
            return PipelineOutcome(500, error_body(GENERIC_ERROR_MESSAGE), decision)
        return PipelineOutcome(200, self._build_body(context), decision)

    def run(self, request: ChatRequest) -> PipelineContext:
        """Execute the pipeline stages for a validated request and return the context."""
        context = PipelineContext(
            request_id=uuid.uuid4().hex[:12],
            message=request.message,
            compare_phones=request.comparePhones,
            history=request.history or [],
        )
        logger.info("request=%s message=%s", context.request_id, truncate_for_log(request.message))
        self._runner.run(context)
        logger.info("request=%s state=%s", context.request_id, context.state)
        return context

    def _step_safety_check(self, context: PipelineContext) -> None:
        # A blocked verdict ends the pipeline with fixed text.
        context.verdict = safety_gate.classify(context.message)
        context.state = "safety_checked"
        if context.verdict.blocked:
            context.refusal_message = context.verdict.refusal_message
            context.state = "refused"
            logger.info("request=%s route=refused reason=%s", context.request_id, context.verdict.reason)

    def _step_classify(self, context: PipelineContext) -> None:
        """Purpose: Classify the message and stop on refusal intents.
        Inputs/Outputs: Input is PipelineContext; sets intent and maybe refusal_message.
        Side Effects / State: One classification call at most.
        Dependencies: IntentClassifier.classify.
        Failure Modes: Classification problems degrade inside the classifier.
        If Removed: Every request would go down the same route.
        Testing Notes: A classifier that says adversarial yields type "refusal".
        """
        # The raw message always travels as freeText for downstream templates.
        intent = self._classifier.classify(context.message, context.verdict)
        params = intent.parameters.model_copy(update={"query": context.message})
        intent = intent.model_copy(update={"parameters": params})
        if len(context.compare_phones or []) >= 2 and intent.type in COMPARE_OVERRIDABLE:
            intent = intent.model_copy(update={"type": "compare"})
        elif intent.type == "search" and is_compare_followup(context.message, context.history):
            intent = intent.model_copy(update={"type": "compare"})
        context.intent = intent
        context.state = "classified"
        if intent.is_refusal:
            category = safety_gate.OFF_TOPIC if intent.type == "irrelevant" else safety_gate.ADVERSARIAL
            context.refusal_message = safety_gate.REFUSAL_MESSAGES[category]
            context.state = "refused_by_intent"
            logger.info("request=%s route=refused_by_intent intent=%s", context.request_id, intent.type)

    def _step_query(self, context: PipelineContext) -> None:
        """Purpose: Build the candidate set for catalog-backed intents.
        Inputs/Outputs: Input is PipelineContext; sets candidates and additional.
        Side Effects / State: Reads the catalog.
        Dependencies: CatalogQueryEngine search/resolve_models/similar.
        Failure Modes: An unavailable catalog raises CatalogUnavailableError (500).
        If Removed: Search, compare, and details answers have no phones.
        Testing Notes: comparePhones is used verbatim; history replays compare follow-ups.
        """
        # Explain and general answers never touch the catalog.
        intent = context.intent
        if intent is None or intent.type not in CATALOG_INTENTS:
            return
        if not self._catalog.available and not (intent.type == "compare" and context.compare_phones):
            raise CatalogUnavailableError("catalog snapshot is not loaded")
        params = intent.parameters

        if intent.type == "search":
            candidates, overflow = self._engine.search(params)
            context.candidates = candidates
            context.additional = overflow if len(overflow) else None
        elif intent.type == "compare":
            context.candidates = self._compare_candidates(context, params.models or [])
        else:
            resolved = self._engine.resolve_models(params.models or [])
            context.candidates = resolved.head(1)
            if len(context.candidates):
                similar = self._engine.similar(context.candidates.entries[0], params)
                context.additional = similar if len(similar) else None
        context.state = "queried"
        logger.info(
            "request=%s route=%s candidates=%s additional=%s",
            context.request_id,
            intent.type,
            ",".join(context.candidates.models) or "-",
            len(context.additional) if context.additional else 0,
        )

    def _compare_candidates(self, context: PipelineContext, models: List[str]) -> CandidateSet:
        # Client-selected phones win; otherwise resolve names, then replay history.
        if context.compare_phones and len(context.compare_phones) >= 2:
            return CandidateSet.build(context.compare_phones)
        resolved = self._engine.resolve_models(models)
        if len(resolved) >= 2:
            return resolved
        previous = latest_assistant_phones(context.history)
        if len(previous) >= 2 and len(models) < 2:
            logger.info("request=%s compare replayed from history count=%s", context.request_id, len(previous))
            return CandidateSet.build(previous)
        return resolved

    def _step_synthesize(self, context: PipelineContext) -> None:
        if context.intent is None:
            return
        context.response = self._synthesizer.synthesize(context.intent, context.candidates, context.additional)
        context.state = "responded"

    def _build_body(self, context: PipelineContext) -> Dict[str, Any]:
        """Shape the 200 body for a refusal or a synthesized answer."""
        if context.refused or context.response is None:
            message = context.refusal_message or safety_gate.REFUSAL_MESSAGES[safety_gate.ADVERSARIAL]
            return ChatResponse(message=message, type="refusal").model_dump(exclude_none=True)
        response = context.response
        phones = list(response.phones.entries) if response.phones is not None else None
        additional = list(response.additional.entries) if response.additional else None
        return ChatResponse(
            message=response.message,
            type=response.type,
            phones=phones,
            additionalPhones=additional,
        ).model_dump(exclude_none=True)

"""Response synthesis: template prompt -> generation -> validation -> fallback.

Each intent family is a two-step FallbackChain: a generative step that must pass
its quality gate, then the deterministic renderer. The phones returned are always
the exact CandidateSet handed in; this module never filters or re-ranks.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from . import fallback_renderer as render
from .explanations import GENERIC_EXPLANATION, lookup_explanation
from .gemini_client import TextGenerator
from .intent_classifier import is_small_talk
from .models import CatalogEntry, QueryIntent
from .prompt_loader import load_prompt, render_prompt
from .query_engine import EMPTY_CANDIDATES, CandidateSet
from .step_runtime import FallbackChain, FallbackStep, StepResult
from .utils import format_price

logger = logging.getLogger("phonepixie.synth")

MIN_LENGTHS = {"search": 50, "compare": 100, "details": 100, "explain": 50, "general": 1}
APOLOGY_PHRASES = (
    "sorry",
    "apologize",
    "apologise",
    "apologies",
    "not sure",
    "unable to",
    "as an ai",
    "i cannot",
    "i can't",
    "i'm not able",
    "i am not able",
    "not able to help",
    "can't help",
    "cannot help",
    "having trouble",
    "don't know",
    "do not know",
)
APOLOGY_RE = re.compile(r"\b(" + "|".join(re.escape(phrase) for phrase in APOLOGY_PHRASES) + r")\b")
NUMBERED_ITEM_RE = re.compile(r"^[\s*_#>-]*(\d{1,2})[.)]\s", re.MULTILINE)


@dataclass(frozen=True)
class SynthesizedResponse:
    """Synthesizer output: message, routed type, and the phones that back it."""
    message: str
    type: str
    phones: Optional[CandidateSet] = None
    additional: Optional[CandidateSet] = None
    source: str = "fallback"


def enumerated_numbers(text: str) -> List[int]:
    return sorted({int(match.group(1)) for match in NUMBERED_ITEM_RE.finditer(text)})


def is_apologetic(text: str) -> bool:
    lowered = text.lower().replace("’", "'")
    return bool(APOLOGY_RE.search(lowered))


def serialize_entries(entries: Sequence[CatalogEntry]) -> str:
    """Purpose: Serialize candidates losslessly for a prompt.
    Inputs/Outputs: Input is entries; output is an indented JSON array carrying every
        catalog field verbatim plus a display price.
    Side Effects / State: None.
    Dependencies: pydantic model_dump, format_price.
    Failure Modes: None.
    If Removed: Prompts would paraphrase specs and invite invented values.
    Testing Notes: Every model name and raw price appears in the output.
    """
    # Raw values stay untouched; price_display is an addition, not a replacement.
    payload = []
    for entry in entries:
        record = entry.model_dump()
        record["price_display"] = format_price(entry.price)
        payload.append(record)
    return json.dumps(payload, ensure_ascii=False, indent=2)


class ResponseSynthesizer:
    """Per-intent template families backed by a deterministic fallback renderer."""

    def __init__(self, generator: Optional[TextGenerator], prompts_dir: Path) -> None:
        self._generator = generator
        self._prompts_dir = prompts_dir

    def synthesize(
        self,
        intent: QueryIntent,
        candidates: CandidateSet = EMPTY_CANDIDATES,
        additional: Optional[CandidateSet] = None,
    ) -> SynthesizedResponse:
        """Purpose: Produce the user-facing message for a routed intent.
        Inputs/Outputs: Inputs are the QueryIntent, the CandidateSet from the query
            engine (or the client), and optional additional phones; output is a
            SynthesizedResponse with a non-empty message and type == intent.type.
        Side Effects / State: At most one generation call.
        Dependencies: Prompt templates, FallbackChain, fallback_renderer.
        Failure Modes: Generation errors, short output, or unusable structure fall back
            to deterministic text; refusal intents raise ValueError because the
            orchestrator answers them before synthesis.
        If Removed: No response text for any non-refusal intent.
        Testing Notes: With a generator that raises, output equals the fallback render.
        """
        # Dispatch per intent family.
        handlers: Dict[str, Callable[[QueryIntent, CandidateSet, Optional[CandidateSet]], SynthesizedResponse]] = {
            "search": self._search,
            "compare": self._compare,
            "details": self._details,
            "explain": self._explain,
            "general": self._general,
        }
        handler = handlers.get(intent.type)
        if handler is None:
            raise ValueError(f"no response template for intent type {intent.type}")
        response = handler(intent, candidates, additional)
        logger.info(
            "synth intent=%s source=%s phones=%s length=%s",
            response.type,
            response.source,
            len(response.phones) if response.phones is not None else 0,
            len(response.message),
        )
        return response

    def _run(
        self,
        kind: str,
        prompt_builder: Callable[[], str],
        validator: Callable[[str], bool],
        fallback: Callable[[], str],
    ) -> Tuple[str, str]:
        """Run generate-then-fallback and return (message, source)."""
        chain: FallbackChain[str] = FallbackChain(
            [
                FallbackStep("model", lambda: self._generate(kind, prompt_builder, validator)),
                FallbackStep("fallback", lambda: StepResult.success(fallback())),
            ]
        )
        result = chain.run()
        return result.value or fallback(), result.step

    def _generate(self, kind: str, prompt_builder: Callable[[], str], validator: Callable[[str], bool]) -> StepResult[str]:
        """Purpose: One generation attempt gated by length and structure checks.
        Inputs/Outputs: Inputs are the intent kind, a prompt builder, and a validator;
            output is a StepResult carrying the accepted text.
        Side Effects / State: One generation call, no retry.
        Dependencies: TextGenerator seam, system_prompt.txt.
        Failure Modes: Any exception, text below MIN_LENGTHS[kind], or a validator
            rejection returns a failure.
        If Removed: Every answer is the deterministic template.
        Testing Notes: A 10-character search answer is rejected.
        """
        # Untrusted output: length gate first, then the family-specific validator.
        if self._generator is None:
            return StepResult.failure("generation unavailable")
        try:
            system_prompt = load_prompt(self._prompts_dir / "system_prompt.txt")
            text = (self._generator.generate(prompt_builder(), system_instruction=system_prompt) or "").strip()
        except Exception as exc:
            logger.warning("generation failed intent=%s error=%s", kind, type(exc).__name__)
            return StepResult.failure("generation error")
        if len(text) < MIN_LENGTHS.get(kind, 1):
            logger.warning("generation too short intent=%s length=%s", kind, len(text))
            return StepResult.failure("too short")
        if not validator(text):
            logger.warning("generation rejected intent=%s", kind)
            return StepResult.failure("failed validation")
        return StepResult.success(text)

    def _template(self, name: str) -> str:
        return load_prompt(self._prompts_dir / name)

    def _search(self, intent: QueryIntent, candidates: CandidateSet, additional: Optional[CandidateSet]) -> SynthesizedResponse:
        params = intent.parameters
        if not candidates:
            message = render.render_no_results(params.budget, params.brands)
            return SynthesizedResponse(message, "search", phones=candidates, source="fallback")

        entries = candidates.entries
        count = len(entries)

        def build() -> str:
            return render_prompt(
                self._template("search.txt"),
                {
                    "QUERY": params.query or "",
                    "BUDGET": format_price(params.budget) if params.budget else "any budget",
                    "PHONES": serialize_entries(entries),
                    "COUNT": str(count),
                },
            )

        def valid(text: str) -> bool:
            # Exactly 1..N numbered items, and every candidate named.
            lowered = text.lower()
            return enumerated_numbers(text) == list(range(1, count + 1)) and all(
                entry.model.lower() in lowered for entry in entries
            )

        message, source = self._run("search", build, valid, lambda: render.render_search(entries, params.budget))
        return SynthesizedResponse(message, "search", phones=candidates, additional=additional, source=source)

    def _compare(self, intent: QueryIntent, candidates: CandidateSet, additional: Optional[CandidateSet]) -> SynthesizedResponse:
        entries = candidates.entries
        if len(entries) < 2:
            message = render.render_compare_missing(intent.parameters.models or [], entries)
            return SynthesizedResponse(message, "compare", phones=None, source="fallback")

        def build() -> str:
            return render_prompt(
                self._template("compare.txt"),
                {"QUERY": intent.parameters.query or "", "PHONES": serialize_entries(entries)},
            )

        def valid(text: str) -> bool:
            lowered = text.lower()
            return all(entry.model.lower() in lowered for entry in entries)

        message, source = self._run("compare", build, valid, lambda: render.render_compare(entries))
        return SynthesizedResponse(message, "compare", phones=candidates, source=source)

    def _details(self, intent: QueryIntent, candidates: CandidateSet, additional: Optional[CandidateSet]) -> SynthesizedResponse:
        if not candidates:
            requested = (intent.parameters.models or [None])[0]
            return SynthesizedResponse(render.render_details_missing(requested), "details", phones=None)
        entry = candidates.entries[0]

        def build() -> str:
            return render_prompt(
                self._template("details.txt"),
                {"QUERY": intent.parameters.query or "", "PHONE": serialize_entries([entry])},
            )

        message, source = self._run("details", build, lambda text: True, lambda: render.render_details(entry))
        return SynthesizedResponse(message, "details", phones=candidates, additional=additional, source=source)

    def _explain(self, intent: QueryIntent, candidates: CandidateSet, additional: Optional[CandidateSet]) -> SynthesizedResponse:
        """Purpose: Explain a technical term, built-in table first.
        Inputs/Outputs: Input is the intent (freeText carries the question); output has
            no phones.
        Side Effects / State: A generation call only when the table has no match.
        Dependencies: lookup_explanation, explain.txt, is_apologetic.
        Failure Modes: Apologetic or short generated text falls back to the generic
            explanation.
        If Removed: Technical questions get no answer.
        Testing Notes: "What is OIS?" never calls the generator.
        """
        # The table is authoritative for the closed vocabulary.
        query = intent.parameters.query or ""
        built_in = lookup_explanation(query)
        if built_in:
            return SynthesizedResponse(built_in, "explain", source="table")

        def build() -> str:
            return render_prompt(self._template("explain.txt"), {"QUERY": query})

        message, source = self._run("explain", build, lambda text: not is_apologetic(text), lambda: GENERIC_EXPLANATION)
        return SynthesizedResponse(message, "explain", source=source)

    def _general(self, intent: QueryIntent, candidates: CandidateSet, additional: Optional[CandidateSet]) -> SynthesizedResponse:
        query = (intent.parameters.query or "").strip()
        if not query:
            return SynthesizedResponse(render.CLARIFICATION_MESSAGE, "general")
        if is_small_talk(query):
            return SynthesizedResponse(render.CAPABILITIES_MESSAGE, "general")

        def build() -> str:
            return render_prompt(self._template("general.txt"), {"QUERY": query})

        message, source = self._run(
            "general", build, lambda text: not is_apologetic(text), lambda: render.GENERAL_FALLBACK_MESSAGE
        )
        return SynthesizedResponse(message, "general", source=source)

"""Intent classification: generative call first, keyword rules as fallback.

The generative step asks for a JSON object matching QueryIntent; anything that
fails to parse or validate drops to the deterministic rule classifier. Rule
extractors also override or fill parameters in a successful model result.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .gemini_client import TextGenerator
from .models import IntentParameters, QueryIntent
from .prompt_loader import load_prompt, render_prompt
from .safety_gate import OFF_TOPIC, SafetyVerdict
from .step_runtime import FallbackChain, FallbackStep, StepResult
from .utils import normalize_text, safe_json_loads, truncate_for_log
from .vocabulary import BRAND_RE, SERIES_RE, canonical_brand, find_brands, has_product_signal, has_tech_term

logger = logging.getLogger("phonepixie.intent")

DEFAULT_RULE_CONFIDENCE = 60

# Numbers marked by a currency sign or a budget word; these always win over bare "Nk".
CUED_BUDGET_PATTERNS = [
    re.compile(r"(?:₹|\brs\.?|\binr)\s*(\d[\d,]*(?:\.\d+)?)\s*(k|lakhs?|lacs?)?\b"),
    re.compile(
        r"\b(?:under|below|within|budget(?:\s+(?:of|is))?|around|upto|up to|less than|max(?:imum)?|about|near)"
        r"\s*(?:₹|rs\.?|inr)?\s*(\d[\d,]*(?:\.\d+)?)\s*(k|lakhs?|lacs?)?\b"
        r"(?!\s*(?:mp|mah|hz|gb|tb|w|mm|inch|%|x|cores?))"
    ),
]
BARE_BUDGET_RE = re.compile(r"\b(\d[\d,]*(?:\.\d+)?)\s*(k|lakhs?|lacs?)\b")
# "4k camera", "records 8k": resolution, not rupees.
MEDIA_WORD_RE = re.compile(
    r"^(camera|cameras|video|videos|recording|record|records|shoot|shoots|shooting|display|displays|screen|"
    r"screens|resolution|tv|monitor|hdr|uhd|fps|60fps|30fps|streaming)$"
)
MEDIA_WINDOW = 2
MIN_PLAIN_BUDGET = 1000

# (pattern, feature token formatter); order is the order features are reported.
FEATURE_PATTERNS = [
    (re.compile(r"\b(\d{2,3})\s?hz\b"), lambda m: f"{m.group(1)}hz"),
    (re.compile(r"\b(\d{1,3})\s?mp\b"), lambda m: f"{m.group(1)}mp"),
    (re.compile(r"\b(\d{4,5})\s?mah\b"), lambda m: f"{m.group(1)}mah"),
    (re.compile(r"\b(\d{1,2})\s?gb\s?(?:of\s)?ram\b"), lambda m: f"{m.group(1)}gb ram"),
    (re.compile(r"\b(\d{2,4})\s?gb\s?(?:of\s)?(?:storage|rom|internal)\b"), lambda m: f"{m.group(1)}gb storage"),
    (re.compile(r"\b5g\b"), lambda m: "5g"),
    (re.compile(r"\bnfc\b"), lambda m: "nfc"),
    (re.compile(r"\b(ir blaster|infrared)\b"), lambda m: "ir blaster"),
    (re.compile(r"\b(fast|quick|turbo|super)\s?charg"), lambda m: "fast charging"),
    (re.compile(r"\b(expandable storage|memory card|micro\s?sd|sd card)\b"), lambda m: "expandable storage"),
    (re.compile(r"\bselfies?\b"), lambda m: "selfie"),
    (re.compile(r"\b(camera|photos?|photography)\b"), lambda m: "camera"),
    (re.compile(r"\b(battery|long lasting|backup)\b"), lambda m: "battery"),
    (re.compile(r"\b(gaming|games?|gamer)\b"), lambda m: "gaming"),
    (re.compile(r"\b(performance|multitasking|powerful)\b"), lambda m: "performance"),
    (re.compile(r"\b(display|screen|amoled)\b"), lambda m: "display"),
]

SPEC_TOKEN_RE = re.compile(
    r"(₹\s*[\d,]+(?:\.\d+)?\s*k?|\brs\.?\s*\d[\d,]*|\b\d{1,3}(?:[ ,]\d{3})+\b|\b\d{4,7}\b|\b\d[\d,]*(?:\.\d+)?\s?(?:hz|mp|mah|gb|tb|w|k|lakhs?|inch|mm)\b|\b[345]g\b)"
)

GENERAL_RE = re.compile(
    r"\b(what can you do|what do you do|who are you|what are you|your capabilities|how can you help|"
    r"how do you work|what can i ask)\b"
)
GREETING_RE = re.compile(r"^(hi|hello|hey|hola|namaste|good (morning|afternoon|evening)|thanks|thank you|help)\b")
COMPARE_RE = re.compile(r"\b(compare|comparison|vs|versus|difference between|better than|which is better)\b")
SEARCH_RE = re.compile(
    r"\b(best|top|recommend\w*|suggest\w*|show me|find|looking for|need a|want a|cheapest|cheap|affordable|"
    r"under|below|budget|good|options?|list)\b"
)
QUESTION_RE = re.compile(
    r"^(?:please\s+|can you\s+|could you\s+)?"
    r"(what is|what s|whats|what are|what does|explain|define|meaning of|how does|how do|"
    r"tell me more about|tell me about|details (?:of|about|on)|specs (?:of|for)|specifications (?:of|for)|"
    r"info (?:on|about)|information (?:on|about))\s+(.+?)\s*(?:mean|means|work|works)?$"
)
DETAIL_CUES = {"tell me more about", "tell me about", "details", "specs", "specifications", "info", "information"}
SHOPPING_NOUN_RE = re.compile(r"\b(phones?|mobiles?|smartphones?|handsets?|devices?)\b")
DETAIL_SUFFIX_RE = re.compile(r"\b(specs|specifications|details|full details|review|features|price)\s*$")
SUBJECT_FILLER_RE = re.compile(
    r"^(?:the\s+|a\s+|an\s+)?(?:(?:technical\s+)?(?:features|specs|specifications|details|price)\s+of\s+(?:the\s+)?)?"
)
COMPARE_LEAD_RE = re.compile(
    r"^(?:please\s+)?(?:compare|comparison(?:\s+(?:of|between))?|difference between|which is better)\s*:?\s*"
)
COMPARE_SPLIT_RE = re.compile(r"\s*(?:\bvs\.?|\bversus\b|\band\b|,|\bor\b|\bwith\b|\bbetter than\b)\s*")


def _budget_value(match: "re.Match[str]") -> Optional[float]:
    number = float(match.group(1).replace(",", "") or 0)
    unit = match.group(2) or ""
    if unit == "k":
        number *= 1000
    elif unit.startswith("la"):
        number *= 100000
    elif number < MIN_PLAIN_BUDGET:
        return None
    return number if number > 0 else None


def _near_media_word(lowered: str, match: "re.Match[str]") -> bool:
    before = re.findall(r"[a-z0-9]+", lowered[: match.start()])[-MEDIA_WINDOW:]
    after = re.findall(r"[a-z0-9]+", lowered[match.end() :])[:MEDIA_WINDOW]
    return any(MEDIA_WORD_RE.match(word) for word in before + after)


def extract_budget(text: str) -> Optional[float]:
    """Purpose: Pull a rupee budget out of free text.
    Inputs/Outputs: Input is raw text; output is a positive number or None.
    Side Effects / State: None.
    Dependencies: CUED_BUDGET_PATTERNS, BARE_BUDGET_RE, MEDIA_WORD_RE.
    Failure Modes: Plain numbers below 1000 without a unit are ignored; spec numbers
        with units (mAh, MP, Hz, GB) are never budgets. A bare "Nk" next to a
        camera, video, or display word is a resolution and is skipped.
    If Removed: Budget hard filters never apply on the rule path.
    Testing Notes: "under ₹30k" -> 30000; "best 4k camera phone under 40k" -> 40000;
        "5000mAh" -> None.
    """
    # Earliest cued number first; a bare "Nk" only when nothing is cued.
    lowered = (text or "").lower()
    cued = sorted(
        (match for pattern in CUED_BUDGET_PATTERNS for match in pattern.finditer(lowered)),
        key=lambda match: match.start(),
    )
    for match in cued:
        value = _budget_value(match)
        if value is not None:
            return value
    for match in BARE_BUDGET_RE.finditer(lowered):
        if _near_media_word(lowered, match):
            continue
        value = _budget_value(match)
        if value is not None:
            return value
    return None


def extract_features(text: str) -> List[str]:
    """Return feature tokens ("5g", "120hz", "camera", ...) mentioned in text."""
    normalized = normalize_text(text)
    features: List[str] = []
    for pattern, formatter in FEATURE_PATTERNS:
        for match in pattern.finditer(normalized):
            token = formatter(match)
            if token not in features:
                features.append(token)
    return features


def strip_spec_tokens(text: str) -> str:
    """Remove prices and unit-bearing spec numbers so digits left behind are model hints."""
    return re.sub(r"\s+", " ", SPEC_TOKEN_RE.sub(" ", text or "")).strip()


def has_model_hint(text: str) -> bool:
    """Purpose: Detect a catalog model-name pattern in a phrase.
    Inputs/Outputs: Input is a normalized phrase; output is True when it carries digits
        or a known series token after spec tokens are removed.
    Side Effects / State: None.
    Dependencies: strip_spec_tokens, SERIES_RE.
    Failure Modes: Brand names alone are not model hints.
    If Removed: explain/details disambiguation cannot be reproduced.
    Testing Notes: "pixel 8a" -> True; "5g" -> False; "ois" -> False.
    """
    # Digits that survive spec stripping, or a series word such as "galaxy".
    stripped = strip_spec_tokens(text)
    if any(ch.isdigit() for ch in stripped):
        return True
    return bool(SERIES_RE.search(stripped))


def _is_detail_cue(cue: str) -> bool:
    return any(cue.startswith(detail_cue) for detail_cue in DETAIL_CUES)


def is_brand_only(subject: str) -> bool:
    """True when a subject names brands (and maybe "phones") but no particular model."""
    normalized = normalize_text(subject)
    leftover = SHOPPING_NOUN_RE.sub(" ", BRAND_RE.sub(" ", normalized)).strip()
    return bool(find_brands(normalized)) and not leftover


def is_browse_subject(subject: str, cue: str = "") -> bool:
    """Purpose: Spot question subjects that ask for a kind of phone, not one phone.
    Inputs/Outputs: Inputs are the cleaned subject and the question cue; output is True
        when the question should be answered by a catalog search.
    Side Effects / State: None.
    Dependencies: is_brand_only, has_model_hint, SHOPPING_NOUN_RE, extract_features.
    Failure Modes: Technical subjects asked with an explain-style cue stay questions
        ("what is a 5g phone" explains 5G).
    If Removed: "Tell me about gaming phones" would look up a phone called "gaming phones".
    Testing Notes: "samsung" -> True; "gaming phones" -> True; "samsung m35" -> False.
    """
    # A bare brand or a described category of phone is a search.
    if is_brand_only(subject):
        return True
    if has_model_hint(subject):
        return False
    detail = _is_detail_cue(cue)
    if SHOPPING_NOUN_RE.search(subject):
        return detail or not has_tech_term(subject)
    return detail and bool(extract_features(subject)) and not has_tech_term(subject)


def disambiguate_subject(subject: str, cue: str = "") -> str:
    """Purpose: Route a "what is X" / "explain X" subject to details or explain.
    Inputs/Outputs: Input is the subject phrase X and the question cue; output is
        "details" or "explain".
    Side Effects / State: None.
    Dependencies: has_model_hint, has_tech_term.
    Failure Modes: When X matches both vocabularies, or neither with an explain-style
        cue, the answer is "explain".
    If Removed: Model questions would get concept explanations and vice versa.
    Testing Notes: "pixel 8a" -> details; "ois" -> explain; "5g" -> explain.
    """
    # Model pattern without a technical term means a phone; ties go to explain.
    is_model = has_model_hint(subject)
    is_tech = has_tech_term(subject)
    if is_model and not is_tech:
        return "details"
    if is_tech:
        return "explain"
    if _is_detail_cue(cue):
        return "details"
    return "explain"


def clean_subject(subject: str) -> str:
    """Strip filler like "technical features of the" and trailing "specs" from a subject."""
    cleaned = SUBJECT_FILLER_RE.sub("", subject.strip(" ?.!"))
    cleaned = DETAIL_SUFFIX_RE.sub("", cleaned).strip()
    return cleaned or subject.strip()


def extract_compare_models(normalized: str) -> List[str]:
    """Split a comparison request into the model phrases being compared."""
    body = COMPARE_LEAD_RE.sub("", normalized.strip(" ?.!"))
    segments = [clean_subject(seg) for seg in COMPARE_SPLIT_RE.split(body) if seg and seg.strip()]
    return [seg for seg in segments if seg and has_model_hint(seg)]


def build_parameters(text: str, models: Optional[List[str]] = None) -> IntentParameters:
    """Collect budget, brand, feature, and model slots from raw text."""
    return IntentParameters(
        budget=extract_budget(text),
        brands=find_brands(text) or None,
        features=extract_features(text) or None,
        models=models or None,
        query=text,
    )


def is_small_talk(text: str) -> bool:
    """True for empty text, capability questions, or a bare greeting."""
    normalized = normalize_text(text)
    if not normalized:
        return True
    if GENERAL_RE.search(normalized):
        return True
    if GREETING_RE.match(normalized):
        remainder = GREETING_RE.sub("", normalized).strip()
        return not remainder or not has_product_signal(remainder)
    return False


def classify_with_rules(text: str, confidence: int = DEFAULT_RULE_CONFIDENCE) -> QueryIntent:
    """Purpose: Deterministic keyword classifier used when generation is unavailable.
    Inputs/Outputs: Input is raw text; output is a QueryIntent with the fixed confidence.
    Side Effects / State: None.
    Dependencies: Extractors and routing regexes in this module.
    Failure Modes: Never raises; unknown text with a product signal is "search",
        anything else is "general".
    If Removed: Classification failures would have no recovery path.
    Testing Notes: "Compare Pixel 8a vs OnePlus 12R" -> compare with two models;
        "What is OIS?" -> explain; "Tell me about Samsung M35" -> details.
    """
    # Route in priority order: general, compare, search, question, model, fallback.
    normalized = normalize_text(text)

    def intent(kind: str, models: Optional[List[str]] = None) -> QueryIntent:
        return QueryIntent(type=kind, confidence=confidence, parameters=build_parameters(text, models), source="rules")

    if is_small_talk(text):
        return intent("general")

    if COMPARE_RE.search(normalized):
        models = extract_compare_models(normalized)
        if models:
            return intent("compare", models)
        if has_tech_term(normalized):
            return intent("explain")
        return intent("search" if has_product_signal(text) else "general")

    question = QUESTION_RE.match(normalized)
    has_budget = extract_budget(text) is not None
    if has_budget or (SEARCH_RE.search(normalized) and not question):
        return intent("search")

    if question:
        cue, subject = question.group(1), clean_subject(question.group(2))
        if (SEARCH_RE.search(subject) and not has_model_hint(subject)) or is_browse_subject(subject, cue):
            return intent("search")
        kind = disambiguate_subject(subject, cue)
        return intent(kind, [subject] if kind == "details" else None)

    if has_model_hint(normalized):
        subject = clean_subject(normalized)
        if has_model_hint(subject) and not extract_features(subject) and not is_brand_only(subject):
            return intent("details", [subject])

    if has_product_signal(text):
        return intent("search")
    return intent("general")


class IntentClassifier:
    """Generative intent classifier with a rule-based fallback chain."""

    def __init__(
        self,
        generator: Optional[TextGenerator],
        prompts_dir: Path,
        rule_confidence: int = DEFAULT_RULE_CONFIDENCE,
    ) -> None:
        """Purpose: Wire the generation seam and build the fallback chain.
        Inputs/Outputs: Inputs are an optional TextGenerator, the prompt directory, and
            the fixed confidence reported by the rule path; no return value.
        Side Effects / State: None.
        Dependencies: FallbackChain, prompt files intent_detection.txt/system_prompt.txt.
        Failure Modes: A None generator makes every call use the rule path.
        If Removed: The orchestrator cannot classify messages.
        Testing Notes: Use a scripted fake generator returning JSON or garbage.
        """
        # Model step first, rule step last and infallible.
        self._generator = generator
        self._prompts_dir = prompts_dir
        self._rule_confidence = rule_confidence
        self._chain: FallbackChain[QueryIntent] = FallbackChain(
            [
                FallbackStep("model", self._classify_with_model),
                FallbackStep("rules", self._classify_with_rules),
            ]
        )

    def classify(self, text: str, verdict: Optional[SafetyVerdict] = None) -> QueryIntent:
        """Purpose: Convert raw text into a QueryIntent.
        Inputs/Outputs: Inputs are the raw text and the Safety Gate verdict; output is a
            QueryIntent whose type is always one of the seven values.
        Side Effects / State: One generation call at most.
        Dependencies: FallbackChain of model and rule steps.
        Failure Modes: Never raises for classification problems; generation errors and
            bad JSON degrade to the rule path.
        If Removed: Routing breaks for every request.
        Testing Notes: Blocked verdicts short-circuit without calling the generator.
        """
        # A blocked verdict maps straight to a refusal type with no parameters.
        if verdict is not None and verdict.blocked:
            kind = "irrelevant" if verdict.reason == OFF_TOPIC else "adversarial"
            return QueryIntent(type=kind, confidence=100, source="safety")
        result = self._chain.run(text)
        intent = result.value if result.ok and result.value is not None else self._fallback(text)
        logger.info(
            "intent=%s confidence=%s source=%s step=%s text=%s",
            intent.type,
            intent.confidence,
            intent.source,
            result.step,
            truncate_for_log(text),
        )
        return intent

    def _fallback(self, text: str) -> QueryIntent:
        return classify_with_rules(text, self._rule_confidence)

    def _classify_with_rules(self, text: str) -> StepResult[QueryIntent]:
        return StepResult.success(self._fallback(text))

    def _classify_with_model(self, text: str) -> StepResult[QueryIntent]:
        """Purpose: Ask the generator for a QueryIntent JSON object and validate it.
        Inputs/Outputs: Input is raw text; output is a StepResult with the intent.
        Side Effects / State: One generation call.
        Dependencies: safe_json_loads, QueryIntent schema, apply_overrides.
        Failure Modes: Missing generator, call error, unparseable JSON, or schema
            violation all return a failure result.
        If Removed: Only keyword rules classify messages.
        Testing Notes: Return '{"type": "search"}' (no confidence) -> failure.
        """
        # Treat the generator as untrusted: parse, validate, then override.
        if self._generator is None or not text.strip():
            return StepResult.failure("generation unavailable")
        try:
            system_prompt = load_prompt(self._prompts_dir / "system_prompt.txt")
            template = load_prompt(self._prompts_dir / "intent_detection.txt")
            prompt = render_prompt(template, {"MESSAGE": text})
            raw = self._generator.generate(prompt, system_instruction=system_prompt)
        except Exception as exc:
            logger.warning("intent generation failed error=%s", type(exc).__name__)
            return StepResult.failure("generation error")
        data = safe_json_loads(raw)
        if data is None:
            return StepResult.failure("unparseable classification")
        try:
            intent = QueryIntent.model_validate({**data, "source": "model"})
        except ValidationError as exc:
            logger.debug("intent schema violation errors=%s", exc.error_count())
            return StepResult.failure("schema violation")
        return StepResult.success(apply_overrides(intent, text, self._rule_confidence))


def apply_overrides(intent: QueryIntent, text: str, rule_confidence: int = DEFAULT_RULE_CONFIDENCE) -> QueryIntent:
    """Purpose: Apply deterministic rules on top of a generated classification.
    Inputs/Outputs: Inputs are the validated model intent and raw text; output is the
        corrected QueryIntent.
    Side Effects / State: None.
    Dependencies: classify_with_rules, disambiguate_subject, rule extractors.
    Failure Modes: None.
    If Removed: The model could route "what is pixel 8a" to explain, refuse on-topic
        text as irrelevant, or drop a stated budget.
    Testing Notes: Model says irrelevant for "best phone under 20k" -> search. Model says
        details for "tell me about gaming phones" -> search.
    """
    # Adversarial stays a refusal and never carries catalog parameters.
    if intent.type == "adversarial":
        return QueryIntent(type="adversarial", confidence=intent.confidence, source=intent.source)
    if intent.type == "irrelevant":
        if has_product_signal(text):
            return classify_with_rules(text, rule_confidence).model_copy(update={"source": "model+rules"})
        return QueryIntent(type="irrelevant", confidence=intent.confidence, source=intent.source)

    rules = classify_with_rules(text, rule_confidence)
    kind = intent.type
    normalized = normalize_text(text)
    question = QUESTION_RE.match(normalized)
    if kind in {"explain", "details"} and question:
        cue, subject = question.group(1), clean_subject(question.group(2))
        kind = "search" if is_browse_subject(subject, cue) else disambiguate_subject(subject, cue)
    if kind == "compare" and rules.type in {"explain", "search", "general"} and not intent.parameters.models:
        kind = rules.type

    params = intent.parameters
    rule_params = rules.parameters
    brands = [canonical_brand(name) or name.lower() for name in (params.brands or [])]
    models = params.models
    if kind in {"compare", "details"} and not models:
        models = rule_params.models
    if kind == "details" and question and rules.type == "details":
        models = rule_params.models or models
    merged = IntentParameters(
        budget=params.budget if params.budget is not None else rule_params.budget,
        brands=brands or rule_params.brands,
        features=params.features or rule_params.features,
        models=models if kind in {"compare", "details"} else None,
        query=params.query or text,
    )
    return QueryIntent(type=kind, confidence=intent.confidence, parameters=merged, source=intent.source)

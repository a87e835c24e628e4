"""Input safety gate run before any catalog or generation work.

Rules live in a declarative table of (pattern, category) pairs so they can be
tested and extended without touching control flow. Refusal text is a fixed
constant per hazard class and is never generated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .utils import normalize_text, truncate_for_log
from .vocabulary import BRAND_ALIASES, KNOWN_BRANDS, has_domain_signal

logger = logging.getLogger("phonepixie.safety")

ADVERSARIAL = "adversarial"
TOXICITY = "toxicity"
OFF_TOPIC = "off_topic"
MALFORMED = "malformed"

REFUSAL_MESSAGES = {
    ADVERSARIAL: (
        "I can only help with mobile phone shopping queries. I can assist you with:\n"
        "- Finding phones based on budget and features\n"
        "- Comparing different models\n"
        "- Explaining technical specifications\n"
        "- Recommending phones for specific needs\n\n"
        "What phone features are you interested in?"
    ),
    TOXICITY: (
        "I'm here to provide helpful, professional and unbiased shopping assistance for every brand. "
        "Let's focus on finding you a great phone that meets your needs. What are you looking for?"
    ),
    OFF_TOPIC: (
        "I'm a mobile phone shopping assistant, so I can only help with phone-related queries.\n\n"
        "**I can help you with:**\n"
        "🔍 Finding phones by budget, brand, or features\n"
        "⚖️ Comparing different phone models\n"
        "📚 Explaining phone technology (5G, OIS, RAM, etc.)\n"
        "📱 Getting details about specific phones\n\n"
        "**Try asking:**\n"
        "• \"Best phone under ₹30k\"\n"
        "• \"Compare iPhone 13 vs Samsung S21\"\n"
        "• \"What is OIS?\"\n\n"
        "What phone-related question can I help you with?"
    ),
    MALFORMED: (
        "I couldn't make sense of that message. Please describe the phone you're looking for, "
        "for example \"5G phone under ₹20k with a good camera\"."
    ),
}

# "nothing" is also an everyday word, so it is left out of brand-bashing rules.
_BRAND_WORDS = "|".join(
    sorted((set(KNOWN_BRANDS) | set(BRAND_ALIASES.keys())) - {"nothing"}, key=len, reverse=True)
)
_INSULTS = (
    r"garbage|trash|rubbish|junk|crap|crappy|sucks?|pathetic|useless|stupid|dumb|hate|hates|losers?|idiots?"
)
# Words that are fair questions ("is this deal a scam") but abuse when asserted.
_VERDICTS = r"scam|scammers|ripoff|rip-off|rip off|fraud|frauds|overrated"
_QUESTION_LEADS = r"is|are|does|do|should|would|can|could|will|was|were|why|how|what|which"

# Evaluated in order; first match wins. Adversarial rules carry no threshold.
SAFETY_RULES: List[Tuple["re.Pattern[str]", str]] = [
    (re.compile(r"\b(ignore|disregard|forget)\b.{0,40}\b(instructions?|rules|prompts?|guidelines|everything)\b"), ADVERSARIAL),
    (re.compile(r"\b(reveal|show|print|dump|display|repeat|leak|tell me)\b.{0,30}\b(system prompt|your prompt|the prompt|(your|system|internal|hidden|initial|original)\s+(instructions|rules|guidelines))\b"), ADVERSARIAL),
    (re.compile(r"\b(api[\s_-]?key|access token|secret key)\b"), ADVERSARIAL),
    (re.compile(r"\b(your|system|admin|server|root|database)\b.{0,20}\b(credentials?|passwords?)\b"), ADVERSARIAL),
    (re.compile(r"\byour\b.{0,20}\btokens?\b"), ADVERSARIAL),
    (re.compile(r"\b(bypass|disable|turn off)\b.{0,20}\b(safety|filters?|guardrails?|restrictions?)\b"), ADVERSARIAL),
    (re.compile(r"\boverride\b.{0,30}\b(security|protocols?|instructions?|rules|safety|settings)\b"), ADVERSARIAL),
    (re.compile(r"\byou are now\b"), ADVERSARIAL),
    (re.compile(r"\bact as (a|an)\b(?!\s+(hotspot|remote|router|modem|webcam|universal remote))"), ADVERSARIAL),
    (re.compile(r"\bpretend (to be|you are|you re)\b"), ADVERSARIAL),
    (re.compile(r"\b(developer|dev|jailbreak|dan|god|admin|debug) mode\b"), ADVERSARIAL),
    (re.compile(r"\bjailbreak"), ADVERSARIAL),
    (re.compile(r"\bshow me everything\b(?!\s+(about|on|for|in)\b)"), ADVERSARIAL),
    (re.compile(r"\bdump (your|the|all)\b"), ADVERSARIAL),
    (re.compile(r"\b(" + _BRAND_WORDS + r")\b.{0,40}\b(" + _INSULTS + r")\b"), TOXICITY),
    (re.compile(r"\b(" + _INSULTS + r")\b.{0,40}\b(" + _BRAND_WORDS + r")\b"), TOXICITY),
    (
        re.compile(
            r"^(?!(" + _QUESTION_LEADS + r")\b).*\b(" + _BRAND_WORDS + r")\b.{0,40}"
            r"\b(is|are|s)\s+(a\s+|an\s+|so\s+|really\s+|totally\s+|total\s+|complete\s+|such a\s+)?(" + _VERDICTS + r")\b"
        ),
        TOXICITY,
    ),
    (re.compile(r"\b(fuck\w*|shit\w*|bitch\w*|bastards?|asshole)\b"), TOXICITY),
]

SPAM_MIN_CHARS = 10
SPAM_MAX_DISTINCT_CHARS = 2
SPAM_MIN_REPEATED_TOKENS = 8


@dataclass(frozen=True)
class SafetyVerdict:
    """Result of the gate: blocked flag, hazard class, and matched rule."""
    blocked: bool
    reason: Optional[str] = None
    rule: Optional[str] = None

    @property
    def refusal_message(self) -> str:
        return REFUSAL_MESSAGES.get(self.reason or "", REFUSAL_MESSAGES[OFF_TOPIC])


ALLOWED = SafetyVerdict(blocked=False)


def is_spam(text: str) -> bool:
    """Purpose: Detect extremely low lexical diversity input.
    Inputs/Outputs: Input is raw text; output is True for character or word floods.
    Side Effects / State: None.
    Dependencies: SPAM_* thresholds.
    Failure Modes: Short repetitive text (under the thresholds) passes.
    If Removed: Floods like "aaaaaaaaaa" would reach classification and generation.
    Testing Notes: "aaaaaaaaaaaa" -> True; "phone phone phone" -> False.
    """
    # A single character flood or one word repeated many times.
    compact = "".join((text or "").lower().split())
    if len(compact) >= SPAM_MIN_CHARS and len(set(compact)) <= SPAM_MAX_DISTINCT_CHARS:
        return True
    tokens = normalize_text(text).split()
    return len(tokens) >= SPAM_MIN_REPEATED_TOKENS and len(set(tokens)) == 1


def classify(text: str) -> SafetyVerdict:
    """Purpose: Decide whether a message must be refused before any catalog work.
    Inputs/Outputs: Input is raw user text of any length; output is a SafetyVerdict.
    Side Effects / State: None; pure function of the input (logging aside).
    Dependencies: SAFETY_RULES, is_spam, has_domain_signal.
    Failure Modes: Biased toward blocking manipulation and toward allowing anything
        with a phone-domain signal.
    If Removed: Manipulation and off-topic text would reach the generation call.
    Testing Notes: Known jailbreak phrasings must all block; "Phone camera vs DSLR"
        must pass.
    """
    # Empty text is a low-signal query, not a hazard.
    if not text or not text.strip():
        return ALLOWED
    normalized = normalize_text(text)
    for pattern, category in SAFETY_RULES:
        if pattern.search(normalized):
            logger.info("blocked reason=%s rule=%s text=%s", category, pattern.pattern[:40], truncate_for_log(text))
            return SafetyVerdict(blocked=True, reason=category, rule=pattern.pattern)
    if is_spam(text):
        logger.info("blocked reason=%s text=%s", MALFORMED, truncate_for_log(text))
        return SafetyVerdict(blocked=True, reason=MALFORMED)
    if not has_domain_signal(text):
        logger.info("blocked reason=%s text=%s", OFF_TOPIC, truncate_for_log(text))
        return SafetyVerdict(blocked=True, reason=OFF_TOPIC)
    return ALLOWED

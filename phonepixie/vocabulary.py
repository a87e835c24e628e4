"""Keyword tables shared by the safety gate, intent classifier, and query engine."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .utils import normalize_text

KNOWN_BRANDS = [
    "apple",
    "asus",
    "google",
    "honor",
    "huawei",
    "infinix",
    "iqoo",
    "lava",
    "motorola",
    "nokia",
    "nothing",
    "oneplus",
    "oppo",
    "poco",
    "realme",
    "samsung",
    "sony",
    "tecno",
    "vivo",
    "xiaomi",
]

BRAND_ALIASES: Dict[str, str] = {
    "iphone": "apple",
    "pixel": "google",
    "galaxy": "samsung",
    "redmi": "xiaomi",
    "moto": "motorola",
    "one plus": "oneplus",
}

MODEL_SERIES_TOKENS = [
    "iphone",
    "galaxy",
    "pixel",
    "redmi",
    "nord",
    "narzo",
    "reno",
    "moto",
    "zenfone",
    "xperia",
]

# Closed technical vocabulary; the explanation table covers a subset of it.
TECH_TERMS = [
    "ois",
    "eis",
    "refresh rate",
    "hz",
    "processor",
    "cpu",
    "gpu",
    "chipset",
    "soc",
    "snapdragon",
    "mediatek",
    "dimensity",
    "ram",
    "rom",
    "storage",
    "internal memory",
    "5g",
    "4g",
    "nfc",
    "ir blaster",
    "infrared blaster",
    "fast charging",
    "wireless charging",
    "mah",
    "battery capacity",
    "megapixel",
    "megapixels",
    "amoled",
    "oled",
    "lcd",
    "display type",
    "hdr",
    "ip68",
    "ip67",
    "gorilla glass",
    "esim",
    "ufs",
    "lpddr",
    "telephoto",
    "ultrawide",
    "aperture",
    "image sensor",
    "bluetooth",
    "wifi",
]

SPEC_WORDS = [
    "camera",
    "cameras",
    "selfie",
    "photo",
    "photos",
    "photography",
    "video",
    "battery",
    "charging",
    "charger",
    "display",
    "screen",
    "specs",
    "specifications",
    "features",
    "gaming",
    "performance",
    "android",
    "ios",
    "gb",
    "mp",
    "sim",
    "dslr",
    "console",
]

SHOPPING_WORDS = [
    "phone",
    "phones",
    "mobile",
    "mobiles",
    "smartphone",
    "smartphones",
    "handset",
    "device",
    "devices",
    "buy",
    "purchase",
    "price",
    "prices",
    "budget",
    "cheap",
    "cheapest",
    "affordable",
    "expensive",
    "cost",
    "deal",
    "recommend",
    "recommendation",
    "suggest",
    "rs",
    "rupees",
    "inr",
    "lakh",
]

COMPARISON_WORDS = ["compare", "comparison", "vs", "versus", "difference", "better"]

ASSISTANT_WORDS = [
    "hello",
    "hi",
    "hey",
    "help",
    "thanks",
    "thank you",
    "what can you do",
    "who are you",
    "capabilities",
]

# Times ("5pm"), ordinals ("21st") and decades ("90s") are not model names.
MODEL_SHAPED_RE = re.compile(
    r"\b(?!\d{1,2}(?:am|pm|st|nd|rd|th)\b)(?!\d{2,4}s\b)(?=[a-z]*\d)(?=\d*[a-z])[a-z0-9]{2,6}\b"
)
PRICE_TOKEN_RE = re.compile(r"(₹|\brs\.?\s*\d|\b\d{1,3}(?:\.\d)?\s?k\b|\b\d{5,7}\b)", re.IGNORECASE)


def _phrase_pattern(phrases: List[str]) -> "re.Pattern[str]":
    # Longest first so multi-word phrases win over their prefixes.
    ordered = sorted(set(phrases), key=len, reverse=True)
    return re.compile(r"\b(" + "|".join(re.escape(p) for p in ordered) + r")\b")


BRAND_RE = _phrase_pattern(KNOWN_BRANDS + list(BRAND_ALIASES.keys()))
SERIES_RE = _phrase_pattern(MODEL_SERIES_TOKENS)
TECH_RE = _phrase_pattern(TECH_TERMS)
DOMAIN_RE = _phrase_pattern(
    KNOWN_BRANDS + list(BRAND_ALIASES.keys()) + MODEL_SERIES_TOKENS + TECH_TERMS + SPEC_WORDS
    + SHOPPING_WORDS + COMPARISON_WORDS + ASSISTANT_WORDS
)


def canonical_brand(name: str) -> Optional[str]:
    """Map a brand or alias mention to the catalog brand name."""
    normalized = normalize_text(name)
    if normalized in BRAND_ALIASES:
        return BRAND_ALIASES[normalized]
    if normalized in KNOWN_BRANDS:
        return normalized
    return None


def find_brands(text: str) -> List[str]:
    """Purpose: Collect canonical brands mentioned in free text, in mention order.
    Inputs/Outputs: Input is raw text; output is a de-duplicated list of brand names.
    Side Effects / State: None.
    Dependencies: BRAND_RE and canonical_brand.
    Failure Modes: Returns an empty list when nothing matches.
    If Removed: Brand filters and brand-bashing detection lose their source.
    Testing Notes: "iPhone vs Pixel" -> ["apple", "google"].
    """
    # Resolve aliases while preserving first-mention order.
    normalized = normalize_text(text)
    brands: List[str] = []
    for match in BRAND_RE.finditer(normalized):
        brand = canonical_brand(match.group(1))
        if brand and brand not in brands:
            brands.append(brand)
    return brands


def has_tech_term(text: str) -> bool:
    return bool(TECH_RE.search(normalize_text(text)))


def has_domain_signal(text: str) -> bool:
    """Purpose: Decide whether text has ANY plausible phone-shopping connection.
    Inputs/Outputs: Input is raw text; output is True on the first signal found.
    Side Effects / State: None.
    Dependencies: DOMAIN_RE, PRICE_TOKEN_RE, MODEL_SHAPED_RE.
    Failure Modes: Errs toward True; model-shaped tokens such as "h2o" also count.
    If Removed: The off-topic check would refuse legitimate queries.
    Testing Notes: "Phone camera vs DSLR" -> True; "Tell me a joke" -> False.
    """
    # Any brand, spec, price, comparison, or model-shaped token is enough.
    if PRICE_TOKEN_RE.search(text or ""):
        return True
    normalized = normalize_text(text)
    if DOMAIN_RE.search(normalized):
        return True
    return bool(MODEL_SHAPED_RE.search(normalized))


PRODUCT_RE = _phrase_pattern(
    KNOWN_BRANDS + list(BRAND_ALIASES.keys()) + MODEL_SERIES_TOKENS + TECH_TERMS + SPEC_WORDS + SHOPPING_WORDS
)


def has_product_signal(text: str) -> bool:
    """Stricter than has_domain_signal: ignores greeting and comparison words."""
    if PRICE_TOKEN_RE.search(text or ""):
        return True
    normalized = normalize_text(text)
    return bool(PRODUCT_RE.search(normalized) or MODEL_SHAPED_RE.search(normalized))

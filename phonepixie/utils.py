import json
import re
import unicodedata
from typing import Any, Dict, Optional


def normalize_text(text: str) -> str:
    """Purpose: Canonical lowercase form of user text for keyword and regex matching.
    Inputs/Outputs: Input is any string; output keeps only ASCII letters, digits, and
        a few separators, with accents folded and runs of whitespace squeezed.
    Side Effects / State: None.
    Dependencies: unicodedata and re; called by safety, intent, and query code.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Keyword tables stop matching and every rule-based path misroutes.
    Testing Notes: "Best   PHONE under ₹30k" -> "best phone under 30k".
    """
    # Fold accents, drop symbols such as the rupee sign, then squeeze spaces.
    if not text:
        return ""
    lowered = text.lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    folded = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s\-_/.+]+", " ", folded)
    return " ".join(cleaned.split())


def normalize_key(text: str) -> str:
    """Purpose: Separator-free key for exact model-name lookups.
    Inputs/Outputs: Input is a model name as typed or stored; output is normalize_text
        with spaces, dashes, underscores, slashes, and dots removed.
    Side Effects / State: None.
    Dependencies: normalize_text; used by CatalogStore's index.
    Failure Modes: Falsy input gives "".
    If Removed: Model resolution loses its stable key.
    Testing Notes: "OnePlus 12R" and "oneplus-12r" must share one key.
    """
    # Same folding as normalize_text, minus every separator.
    return re.sub(r"[\s\-_/.]+", "", normalize_text(text))


def truncate_for_log(text: str, limit: int = 80) -> str:
    """Shorten user text before it is written to a log line."""
    if not text:
        return ""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3] + "..."


def extract_json_block(text: str) -> Optional[str]:
    """Purpose: Cut the outermost {...} span out of a generated reply.
    Inputs/Outputs: Input is the raw reply; output is the brace-delimited substring, or
        None when no such span exists.
    Side Effects / State: None.
    Dependencies: Used by safe_json_loads.
    Failure Modes: Returns None when an opening or closing brace is missing.
    If Removed: Classification replies wrapped in prose or code fences cannot be parsed.
    Testing Notes: A ```json fenced object with a lead-in sentence still extracts.
    """
    # First "{" to last "}"; nested objects stay intact.
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def safe_json_loads(text: str) -> Optional[Dict[str, Any]]:
    """Purpose: Decode a generated classification reply into a dict without raising.
    Inputs/Outputs: Input is raw reply text; output is the decoded object or None.
    Side Effects / State: None.
    Dependencies: extract_json_block and json.loads; called by the intent classifier.
    Failure Modes: Missing braces, invalid JSON, or a non-object value all give None.
    If Removed: A malformed classification reply would crash the request.
    Testing Notes: '{broken' -> None; a fenced object -> dict.
    """
    # The reply is untrusted; anything but a JSON object is rejected.
    block = extract_json_block(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def format_price(value: float) -> str:
    """Purpose: Render a rupee price with Indian digit grouping.
    Inputs/Outputs: Input is a number; output such as "₹1,23,456".
    Side Effects / State: None.
    Dependencies: Used by every deterministic renderer and prompt serializer.
    Failure Modes: Fractions are rounded to whole rupees.
    If Removed: Fallback text loses its stable price format.
    Testing Notes: 28999 -> "₹28,999"; 123456 -> "₹1,23,456"; 999 -> "₹999".
    """
    # Group the last three digits, then pairs, as in en-IN formatting.
    digits = str(int(round(value)))
    if len(digits) <= 3:
        return f"₹{digits}"
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return "₹" + ",".join(pairs + [tail])


def format_number(value: float) -> str:
    """Drop a trailing ".0" so spec values read like the catalog ("50", "6.7")."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"

"""Deterministic response templates used when generation fails or is rejected.

Every function here is pure: identical inputs render byte-identical text. No
generation call, clock, or randomness is involved.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import CatalogEntry
from .utils import format_number, format_price

CAPABILITIES_MESSAGE = """Hello! I'm PhonePixie, your mobile phone shopping assistant.

**Here's what I can help you with:**

**Search & Recommend**
- Find phones by budget (e.g., "Best phone under ₹30k")
- Filter by features (camera, battery, 5G, gaming) and brands

**Compare Phones**
- Compare 2-3 phones side by side
- Example: "Compare Pixel 8a vs OnePlus 12R"

**Explain Technology**
- Understand terms like OIS, EIS, refresh rate, and processors
- Example: "What is OIS?" or "Explain refresh rate"

**Try asking me:**
- "Show me gaming phones under ₹40k"
- "Compare iPhone 13 vs Samsung S21"
- "Samsung phones with 120Hz display under ₹25k"

What would you like to know about mobile phones?"""

CLARIFICATION_MESSAGE = (
    "I didn't catch a question there. Tell me your budget, a brand you like, or the features "
    "that matter most (camera, battery, gaming), and I'll find phones for you."
)

GENERAL_FALLBACK_MESSAGE = "I'm here to help you find the perfect mobile phone. What are you looking for?"


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _connectivity(entry: CatalogEntry) -> str:
    parts = ["5G" if entry.has_5g else "4G"]
    if entry.has_nfc:
        parts.append("NFC")
    if entry.has_ir_blaster:
        parts.append("IR Blaster")
    return ", ".join(parts)


def _storage(entry: CatalogEntry) -> str:
    text = f"{entry.internal_memory}GB"
    if entry.extended_memory_available and entry.extended_upto:
        text += f" (expandable up to {entry.extended_upto}GB)"
    return text


def _battery(entry: CatalogEntry) -> str:
    text = f"{entry.battery_capacity}mAh"
    if entry.fast_charging_available:
        text += f" with {entry.fast_charging}W fast charging" if entry.fast_charging else " with fast charging"
    return text


def highlight_reasons(entry: CatalogEntry) -> List[str]:
    """Purpose: Derive "why recommended" phrases from an entry's specs.
    Inputs/Outputs: Input is one CatalogEntry; output is reasons in fixed priority
        order (camera, battery, RAM, display, 5G).
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Returns an empty list for entries below every threshold.
    If Removed: Fallback search and compare text has no rationale lines.
    Testing Notes: 50MP/5000mAh/8GB/120Hz/5G -> five reasons in that order.
    """
    # Thresholds mirror how the catalog is usually segmented.
    reasons: List[str] = []
    camera = format_number(entry.primary_camera_rear)
    if entry.primary_camera_rear >= 50:
        reasons.append(f"{camera}MP camera for excellent photo quality")
    elif entry.primary_camera_rear >= 40:
        reasons.append(f"{camera}MP camera for good photos")
    if entry.battery_capacity >= 5000:
        reasons.append(f"{entry.battery_capacity}mAh battery for all-day usage")
    elif entry.battery_capacity >= 4500:
        reasons.append(f"{entry.battery_capacity}mAh battery for reliable battery life")
    if entry.ram_capacity >= 8:
        reasons.append(f"{entry.ram_capacity}GB RAM for smooth multitasking")
    elif entry.ram_capacity >= 6:
        reasons.append(f"{entry.ram_capacity}GB RAM for good performance")
    if entry.refresh_rate >= 120:
        reasons.append(f"{entry.refresh_rate}Hz display for ultra-smooth scrolling")
    elif entry.refresh_rate >= 90:
        reasons.append(f"{entry.refresh_rate}Hz display for smooth visuals")
    if entry.has_5g:
        reasons.append("5G ready for future-proof connectivity")
    return reasons


def best_for(entry: CatalogEntry) -> List[str]:
    uses: List[str] = []
    if entry.primary_camera_rear >= 50:
        uses.append("photography")
    if entry.battery_capacity >= 5000:
        uses.append("heavy usage")
    if entry.ram_capacity >= 8:
        uses.append("gaming and multitasking")
    if entry.refresh_rate >= 90:
        uses.append("smooth media consumption")
    return uses


def render_search(entries: Sequence[CatalogEntry], budget: Optional[float] = None) -> str:
    """Purpose: Numbered recommendation list for a non-empty candidate set.
    Inputs/Outputs: Inputs are ranked entries and the optional budget; output is
        markdown that enumerates exactly len(entries) phones numbered from 1.
    Side Effects / State: None.
    Dependencies: highlight_reasons, format_price.
    Failure Modes: An empty sequence should go to render_no_results instead.
    If Removed: Search answers depend entirely on generation.
    Testing Notes: Two calls with the same entries return identical strings.
    """
    # Header, then one numbered block per entry in rank order.
    count = len(entries)
    plural = "s" if count != 1 else ""
    budget_text = f" under {format_price(budget)}" if budget else ""
    lines = [f"I found {count} excellent option{plural} for you{budget_text}:", ""]
    for position, entry in enumerate(entries, start=1):
        lines.append(f"**{position}. {entry.model}** - {format_price(entry.price)}")
        reasons = highlight_reasons(entry)[:3]
        if reasons:
            why = ", ".join(reasons) + "."
        else:
            why = (
                f"Solid specs with {format_number(entry.primary_camera_rear)}MP camera, "
                f"{entry.battery_capacity}mAh battery, and {entry.ram_capacity}GB RAM."
            )
        lines.append(f"**Why recommended?** {why} Great value at this price point.")
        specs = (
            f"{format_number(entry.primary_camera_rear)}MP Camera • {entry.battery_capacity}mAh Battery • "
            f"{entry.ram_capacity}GB RAM • {entry.internal_memory}GB Storage"
        )
        if entry.has_5g:
            specs += " • 5G"
        lines.append(f"**Key Specs:** {specs}")
        lines.append("")
    return "\n".join(lines).rstrip()


def render_no_results(budget: Optional[float] = None, brands: Optional[Sequence[str]] = None) -> str:
    """Message for an empty candidate set; suggests relaxing criteria."""
    budget_text = f" under {format_price(budget)}" if budget else ""
    brand_text = f" from {', '.join(b.title() for b in brands)}" if brands else ""
    return (
        f"I couldn't find any phones matching your criteria{brand_text}{budget_text}. "
        "Try relaxing a requirement, such as raising the budget, removing a brand, or dropping a feature, "
        "and I'll search again."
    )


def render_compare(entries: Sequence[CatalogEntry]) -> str:
    """Purpose: Side-by-side comparison with a spec table and a decision section.
    Inputs/Outputs: Input is two or more entries; output is markdown.
    Side Effects / State: None.
    Dependencies: highlight_reasons, format_price.
    Failure Modes: Ties for "best" pick the earliest entry so output is stable.
    If Removed: Compare answers depend entirely on generation.
    Testing Notes: Contains one "Choose X if you" line per phone.
    """
    # Table rows first, then highlights, decision framework, and quick picks.
    names = [entry.model for entry in entries]
    lines = [f"Let's compare {' vs '.join(names)}:", "", "**Quick Comparison:**", ""]
    lines.append("| Feature | " + " | ".join(names) + " |")
    lines.append("|---------|" + "|".join("---------" for _ in entries) + "|")
    rows = [
        ("Price", [format_price(e.price) for e in entries]),
        ("Camera", [f"{format_number(e.primary_camera_rear)}MP" for e in entries]),
        ("Battery", [f"{e.battery_capacity}mAh" for e in entries]),
        ("RAM/Storage", [f"{e.ram_capacity}GB/{e.internal_memory}GB" for e in entries]),
        ("Display", [f'{format_number(e.screen_size)}" {e.refresh_rate}Hz' for e in entries]),
        ("5G", [_yes_no(e.has_5g) for e in entries]),
        ("Rating", [f"{format_number(e.rating)}/100" for e in entries]),
    ]
    for label, values in rows:
        lines.append(f"| **{label}** | " + " | ".join(values) + " |")
    lines.extend(["", "**What Makes Each Special:**", ""])
    for position, entry in enumerate(entries, start=1):
        lines.append(f"**{position}. {entry.model}** ({format_price(entry.price)})")
        highlights = highlight_reasons(entry)[:2]
        if not highlights:
            highlights = [
                f"Solid performance with {format_number(entry.primary_camera_rear)}MP camera "
                f"and {entry.battery_capacity}mAh battery"
            ]
        lines.extend(f"- {item}" for item in highlights)
        lines.append("")

    lines.append("**Choose Your Phone:**")
    for entry in entries:
        uses = best_for(entry) or ["everyday use and general tasks"]
        lines.append(f"- **Choose {entry.model} if you** want {', '.join(uses)}.")
    lines.append("")

    cheapest = min(entries, key=lambda e: e.price)
    best_camera = max(entries, key=lambda e: e.primary_camera_rear)
    best_battery = max(entries, key=lambda e: e.battery_capacity)
    lines.append("**Quick Recommendations:**")
    lines.append(f"- **Best Value:** {cheapest.model} (most affordable at {format_price(cheapest.price)})")
    lines.append(f"- **Best Camera:** {best_camera.model} ({format_number(best_camera.primary_camera_rear)}MP)")
    lines.append(f"- **Best Battery:** {best_battery.model} ({best_battery.battery_capacity}mAh)")
    return "\n".join(lines)


def render_compare_missing(requested: Sequence[str], resolved: Sequence[CatalogEntry]) -> str:
    """Message when fewer than two phones could be resolved for a comparison."""
    found = {entry.model.lower() for entry in resolved}
    missing = [name for name in requested if not any(name.lower() in model for model in found)]
    if missing:
        listed = ", ".join(f'"{name}"' for name in missing)
        return (
            f"I couldn't find {listed} in my catalog, so I can't run that comparison. "
            "Please check the model names, or name at least two phones to compare."
        )
    return "I couldn't find at least two phones to compare. Please name two or three models, for example \"Compare Pixel 8a vs OnePlus 12R\"."


def render_details(entry: CatalogEntry) -> str:
    """Purpose: Full spec sheet with reasons and a "best for" line for one phone.
    Inputs/Outputs: Input is one entry; output is markdown.
    Side Effects / State: None.
    Dependencies: format_price, format_number.
    Failure Modes: None.
    If Removed: Details answers depend entirely on generation.
    Testing Notes: Expandable storage renders its ceiling only when available.
    """
    # Header, reasons, detailed specs, then the recommended use.
    rear = format_number(entry.primary_camera_rear)
    front = format_number(entry.primary_camera_front)
    lines = [f"**{entry.model}** - {format_price(entry.price)}", "", "**Why Consider This Phone?**"]
    if entry.primary_camera_rear >= 50:
        lines.append(f"- {rear}MP camera system delivers excellent photo quality")
    elif entry.primary_camera_rear >= 40:
        lines.append(f"- {rear}MP camera provides good photo quality for everyday use")
    else:
        lines.append(f"- {rear}MP camera handles daily photography needs well")
    for reason in highlight_reasons(entry):
        if "camera" not in reason:
            lines.append(f"- {reason}")
    lines.extend(
        [
            "",
            "**Detailed Specifications:**",
            "",
            f"- **Camera System**: {rear}MP main ({entry.num_rear_cameras} rear cameras) + {front}MP front",
            f"- **Battery**: {_battery(entry)}",
            f"- **Memory**: {entry.ram_capacity}GB RAM, {_storage(entry)} storage",
            (
                f'- **Display**: {format_number(entry.screen_size)}" screen with {entry.refresh_rate}Hz refresh rate '
                f"({entry.resolution_width}x{entry.resolution_height})"
            ),
            f"- **Processor**: {entry.num_cores}-core"
            + (f" {entry.processor_brand.title()}" if entry.processor_brand else "")
            + " processor",
            f"- **OS**: {entry.os.upper()}",
            f"- **Connectivity**: {_connectivity(entry)}",
            f"- **Overall Rating**: {format_number(entry.rating)}/100",
            "",
            f"**Best For:** {', '.join(best_for(entry)) or 'everyday use and general tasks'}",
        ]
    )
    return "\n".join(lines)


def render_details_missing(name: Optional[str]) -> str:
    if name:
        return (
            f'I couldn\'t find "{name}" in my catalog. Please check the model name, '
            "or ask me to search for phones by budget or features instead."
        )
    return "Which phone would you like to know about? Tell me the model name, for example \"Tell me about Pixel 8a\"."

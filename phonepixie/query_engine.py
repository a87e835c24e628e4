"""Catalog query engine: hard filters, deterministic ranking, and model lookup.

Hard filters decide eligibility; ranking only orders what survived them. The
sort key is (rating desc, price asc, declared feature matches desc, model) so
repeated identical queries always return the same candidates in the same order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .catalog_store import CatalogStore
from .models import CatalogEntry, IntentParameters
from .utils import normalize_text
from .vocabulary import canonical_brand

logger = logging.getLogger("phonepixie.query")

SIMILAR_PRICE_BAND = 0.15
RESOLVE_STOPWORDS = {"the", "a", "an", "phone"}

Predicate = Callable[[CatalogEntry], bool]


@dataclass(frozen=True)
class FeatureRequirement:
    """Parsed feature token: hard requirements filter, soft ones only count matches."""
    token: str
    hard: bool
    predicate: Predicate


def _floor(attr: str) -> Callable[[re.Match], Predicate]:
    def build(match: re.Match) -> Predicate:
        floor = float(match.group(1))
        return lambda entry: float(getattr(entry, attr) or 0) >= floor

    return build


# Numeric floors are checked before flags and soft features; first match wins.
NUMERIC_FEATURES = [
    (re.compile(r"\b(\d{2,3})\s?hz\b"), _floor("refresh_rate")),
    (re.compile(r"\b(\d{1,3})\s?mp\b"), _floor("primary_camera_rear")),
    (re.compile(r"\b(\d{4,5})\s?mah\b"), _floor("battery_capacity")),
    (re.compile(r"\b(\d{1,2})\s?gb\s?(?:of\s)?ram\b"), _floor("ram_capacity")),
    (re.compile(r"\b(\d{2,4})\s?gb\s?(?:of\s)?(?:storage|rom|internal)\b"), _floor("internal_memory")),
]

FLAG_FEATURES: List[Tuple["re.Pattern[str]", Predicate]] = [
    (re.compile(r"\b5g\b"), lambda e: e.has_5g),
    (re.compile(r"\bnfc\b"), lambda e: e.has_nfc),
    (re.compile(r"\b(ir blaster|infrared)\b"), lambda e: e.has_ir_blaster),
    (re.compile(r"\b(fast|quick|turbo|super)\s?charg"), lambda e: e.fast_charging_available),
    (re.compile(r"\b(expandable|memory card|micro\s?sd|sd card)\b"), lambda e: e.extended_memory_available),
]

SOFT_FEATURES: List[Tuple["re.Pattern[str]", Predicate]] = [
    (re.compile(r"\bselfie"), lambda e: e.primary_camera_front >= 16),
    (re.compile(r"\b(camera|photo|photography)"), lambda e: e.primary_camera_rear >= 50 or e.num_rear_cameras >= 3),
    (re.compile(r"\b(battery|backup|long lasting)\b"), lambda e: e.battery_capacity >= 5000),
    (re.compile(r"\b(gaming|games?|gamer)\b"), lambda e: e.refresh_rate >= 120 and e.ram_capacity >= 8),
    (re.compile(r"\b(performance|multitasking|powerful|fast)\b"), lambda e: e.ram_capacity >= 8 and e.num_cores >= 8),
    (re.compile(r"\b(display|screen|amoled)\b"), lambda e: e.refresh_rate >= 120 or e.screen_size >= 6.5),
]


def parse_feature(token: str) -> Optional[FeatureRequirement]:
    """Purpose: Interpret one feature token as a hard filter or a soft preference.
    Inputs/Outputs: Input is a token like "120hz", "5g", or "good camera"; output is a
        FeatureRequirement or None when the token is not understood.
    Side Effects / State: None.
    Dependencies: NUMERIC_FEATURES, FLAG_FEATURES, SOFT_FEATURES tables.
    Failure Modes: Unknown tokens return None and are ignored by the engine.
    If Removed: Feature requests no longer constrain or order results.
    Testing Notes: "120Hz display" -> hard floor on refresh_rate >= 120.
    """
    # Numeric floors, then boolean flags, then descriptive soft features.
    normalized = normalize_text(token)
    for pattern, builder in NUMERIC_FEATURES:
        match = pattern.search(normalized)
        if match:
            return FeatureRequirement(normalized, True, builder(match))
    for pattern, predicate in FLAG_FEATURES:
        if pattern.search(normalized):
            return FeatureRequirement(normalized, True, predicate)
    for pattern, predicate in SOFT_FEATURES:
        if pattern.search(normalized):
            return FeatureRequirement(normalized, False, predicate)
    return None


@dataclass(frozen=True)
class CandidateSet:
    """Ordered, model-unique catalog entries with one score per entry.

    The score is the count of declared soft and hard features the entry matches.
    """
    entries: Tuple[CatalogEntry, ...] = ()
    scores: Tuple[int, ...] = field(default=())

    @classmethod
    def build(cls, entries: Sequence[CatalogEntry], scores: Optional[Sequence[int]] = None) -> "CandidateSet":
        # Keep the first occurrence of each model, preserving order.
        scores = list(scores) if scores is not None else [0] * len(entries)
        seen = set()
        kept: List[CatalogEntry] = []
        kept_scores: List[int] = []
        for entry, score in zip(entries, scores):
            key = entry.model.lower()
            if key in seen:
                continue
            seen.add(key)
            kept.append(entry)
            kept_scores.append(score)
        return cls(tuple(kept), tuple(kept_scores))

    def head(self, count: int) -> "CandidateSet":
        return CandidateSet(self.entries[:count], self.scores[:count])

    def slice(self, start: int, stop: int) -> "CandidateSet":
        return CandidateSet(self.entries[start:stop], self.scores[start:stop])

    @property
    def models(self) -> List[str]:
        return [entry.model for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)


EMPTY_CANDIDATES = CandidateSet()


class CatalogQueryEngine:
    """Filter-then-rank search over the read-only catalog."""

    def __init__(
        self,
        catalog: CatalogStore,
        candidate_cap: int = 3,
        compare_cap: int = 3,
        additional_cap: int = 2,
    ) -> None:
        self._catalog = catalog
        self._candidate_cap = max(1, candidate_cap)
        self._compare_cap = max(2, compare_cap)
        self._additional_cap = max(0, additional_cap)

    def query(self, parameters: IntentParameters) -> CandidateSet:
        """Purpose: Return the capped candidate set for search parameters.
        Inputs/Outputs: Input is IntentParameters; output is a CandidateSet of at most
            candidate_cap entries, every one satisfying all hard filters.
        Side Effects / State: Reads the catalog; logs filter counts.
        Dependencies: rank().
        Failure Modes: An unavailable catalog raises CatalogUnavailableError; no
            matches return an empty set.
        If Removed: Search and details alternatives have no data.
        Testing Notes: Every price <= budget; identical calls return identical sets.
        """
        # Rank everything eligible, then keep the head.
        return self.rank(parameters).head(self._candidate_cap)

    def search(self, parameters: IntentParameters) -> Tuple[CandidateSet, CandidateSet]:
        """Return (candidates, overflow) where overflow holds the next ranked entries."""
        ranked = self.rank(parameters)
        cap = self._candidate_cap
        return ranked.head(cap), ranked.slice(cap, cap + self._additional_cap)

    def rank(self, parameters: IntentParameters, pool: Optional[Sequence[CatalogEntry]] = None) -> CandidateSet:
        """Purpose: Apply hard filters and order the survivors deterministically.
        Inputs/Outputs: Inputs are IntentParameters and an optional entry pool (defaults
            to the whole catalog); output is the uncapped ranked CandidateSet.
        Side Effects / State: Debug/info logging only.
        Dependencies: parse_feature, canonical_brand.
        Failure Modes: Unknown feature tokens are ignored.
        If Removed: No ordering guarantee between repeated queries.
        Testing Notes: Equal ratings order by cheaper price first.
        """
        # Hard filters first; ranking never rescues an ineligible entry.
        entries = self._catalog.all() if pool is None else pool
        budget = parameters.budget
        brands = [canonical_brand(name) or normalize_text(name) for name in (parameters.brands or [])]
        requirements = [req for req in (parse_feature(token) for token in (parameters.features or [])) if req]
        hard = [req for req in requirements if req.hard]

        eligible: List[Tuple[CatalogEntry, int]] = []
        for entry in entries:
            if budget is not None and entry.price > budget:
                continue
            if brands and not any(brand in entry.brand_name.lower() for brand in brands):
                continue
            if not all(req.predicate(entry) for req in hard):
                continue
            matches = sum(1 for req in requirements if req.predicate(entry))
            eligible.append((entry, matches))

        eligible.sort(key=lambda pair: (-pair[0].rating, pair[0].price, -pair[1], pair[0].model.lower()))
        logger.info(
            "query budget=%s brands=%s features=%s eligible=%s",
            budget,
            ",".join(brands) or "-",
            ",".join(req.token for req in requirements) or "-",
            len(eligible),
        )
        return CandidateSet.build([entry for entry, _ in eligible], [score for _, score in eligible])

    def resolve_models(self, names: Sequence[str]) -> CandidateSet:
        """Purpose: Resolve user-typed model names to catalog entries for compare/details.
        Inputs/Outputs: Input is names in mention order; output is a CandidateSet in the
            same order, capped at compare_cap.
        Side Effects / State: Logs unresolved names.
        Dependencies: CatalogStore.get for exact lookups, _near_match otherwise.
        Failure Modes: Unresolved names are dropped silently; the caller reports gaps.
        If Removed: Compare and details cannot find the phones the user named.
        Testing Notes: "samsung m35" -> "Samsung Galaxy M35 5G"; "iphone 999" -> dropped.
        """
        # Exact normalized match first, then the closest token-subset match.
        resolved: List[CatalogEntry] = []
        for name in names:
            entry = self._catalog.get(name) or self._near_match(name)
            if entry is None:
                logger.info("model unresolved name=%s", name)
                continue
            resolved.append(entry)
        return CandidateSet.build(resolved).head(self._compare_cap)

    def _near_match(self, name: str) -> Optional[CatalogEntry]:
        # Every typed token must appear in "<brand> <model>"; fewest extra tokens wins.
        typed = _name_tokens(name)
        if not typed:
            return None
        best: Optional[Tuple[int, float, str]] = None
        best_entry: Optional[CatalogEntry] = None
        for entry in self._catalog.all():
            tokens = _name_tokens(f"{entry.brand_name} {entry.model}")
            if not typed <= tokens:
                continue
            rank = (len(tokens - typed), -entry.rating, entry.model.lower())
            if best is None or rank < best:
                best, best_entry = rank, entry
        return best_entry

    def similar(self, entry: CatalogEntry, parameters: Optional[IntentParameters] = None) -> CandidateSet:
        """Purpose: Find similarly priced alternatives to one phone.
        Inputs/Outputs: Inputs are the anchor entry and optional parameters whose budget
            and feature filters still apply; output is up to additional_cap entries.
        Side Effects / State: None.
        Dependencies: rank() over a pool limited to the price band.
        Failure Modes: Empty set when nothing sits within the band.
        If Removed: Details responses carry no additionalPhones.
        Testing Notes: Anchor itself is never included.
        """
        # Same ranking as search over the +/- price band; brand is not a filter here.
        low = entry.price * (1 - SIMILAR_PRICE_BAND)
        high = entry.price * (1 + SIMILAR_PRICE_BAND)
        pool = [
            other
            for other in self._catalog.all()
            if other.model != entry.model and low <= other.price <= high
        ]
        filters = IntentParameters(
            budget=parameters.budget if parameters else None,
            features=parameters.features if parameters else None,
        )
        return self.rank(filters, pool).head(self._additional_cap)


def _name_tokens(text: str) -> set:
    normalized = normalize_text(text).replace("one plus", "oneplus")
    return {token for token in normalized.split() if token not in RESOLVE_STOPWORDS}

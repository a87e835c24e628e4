from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

IntentType = Literal["search", "compare", "explain", "details", "general", "adversarial", "irrelevant"]
REFUSAL_INTENTS = {"adversarial", "irrelevant"}


class CatalogEntry(BaseModel):
    """One phone record from the validated catalog snapshot."""
    model_config = ConfigDict(frozen=True)

    brand_name: str
    model: str
    price: float
    rating: float = Field(ge=0, le=100)
    has_5g: bool = False
    has_nfc: bool = False
    has_ir_blaster: bool = False
    num_cores: int = 8
    processor_brand: Optional[str] = None
    battery_capacity: int
    fast_charging_available: bool = False
    fast_charging: Optional[int] = None
    ram_capacity: int
    internal_memory: int
    extended_memory_available: bool = False
    extended_upto: Optional[int] = None
    screen_size: float
    refresh_rate: int = 60
    resolution_width: int
    resolution_height: int
    num_rear_cameras: int = 1
    num_front_cameras: int = 1
    primary_camera_rear: float
    primary_camera_front: float
    os: str = "android"


class IntentParameters(BaseModel):
    """Structured slots extracted from a query."""
    budget: Optional[float] = None
    brands: Optional[List[str]] = None
    features: Optional[List[str]] = None
    models: Optional[List[str]] = None
    query: Optional[str] = Field(default=None, alias="freeText")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("budget")
    @classmethod
    def _positive_budget(cls, value: Optional[float]) -> Optional[float]:
        # Non-positive budgets carry no constraint.
        if value is None or value <= 0:
            return None
        return value

    @field_validator("brands", "features", "models")
    @classmethod
    def _clean_list(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        # Drop blanks and duplicates while preserving order.
        if not value:
            return None
        seen: List[str] = []
        for item in value:
            text = str(item).strip()
            if text and text.lower() not in [s.lower() for s in seen]:
                seen.append(text)
        return seen or None


class QueryIntent(BaseModel):
    """Classified intent: type, confidence, and parameters."""
    type: IntentType
    confidence: int = Field(ge=0, le=100)
    parameters: IntentParameters = Field(default_factory=IntentParameters)
    source: str = "rules"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> int:
        # Classifiers report floats or out-of-range numbers; clamp to 0-100.
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ValueError("confidence must be numeric")
        return int(max(0, min(100, round(number))))

    @property
    def is_refusal(self) -> bool:
        return self.type in REFUSAL_INTENTS


class ConversationTurn(BaseModel):
    """A prior turn replayed by the client; never stored server-side."""
    role: Literal["user", "assistant"]
    content: str = ""
    phones: Optional[List[CatalogEntry]] = None
    type: Optional[str] = None
    timestamp: Optional[float] = None


class ChatRequest(BaseModel):
    """Request payload for the chat API."""
    message: StrictStr
    comparePhones: Optional[List[CatalogEntry]] = None
    history: Optional[List[ConversationTurn]] = None


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    message: str
    type: str
    phones: Optional[List[CatalogEntry]] = None
    additionalPhones: Optional[List[CatalogEntry]] = None

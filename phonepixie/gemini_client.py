from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol, Tuple

import google.generativeai as genai
from google.generativeai import types as genai_types

from .config import Settings
from .errors import GenerationFailure

logger = logging.getLogger("phonepixie.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
]


class TextGenerator(Protocol):
    """Untrusted text-generation seam: (prompt, system instruction) -> text."""

    def generate(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        ...


class GeminiClient:
    """Thin wrapper around Gemini SDK with model caching, safety settings, and timeout."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Bind the SDK to the configured key, model, and call timeout.
        Inputs/Outputs: Input is Settings (key, model name, timeout); no return value.
        Side Effects / State: Sets the process-wide SDK API key; starts an empty model cache.
        Dependencies: google.generativeai.configure.
        Failure Modes: ValueError when the key or the model name is blank.
        If Removed: Generative classification and synthesis always use fallbacks.
        Testing Notes: Validate missing key raises ValueError.
        """
        # Configure API key; models are created lazily per system instruction.
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self._model_name = _normalize_model_name(settings.gemini_model)
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        self._timeout = settings.generation_timeout_sec
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[Tuple[str, str], genai.GenerativeModel] = {}

    def _get_model(self, system_instruction: Optional[str]) -> genai.GenerativeModel:
        # Cache one model instance per (name, system instruction) pair.
        key = (self._model_name, system_instruction or "")
        if key not in self._models:
            if system_instruction:
                self._models[key] = genai.GenerativeModel(self._model_name, system_instruction=system_instruction)
            else:
                self._models[key] = genai.GenerativeModel(self._model_name)
        return self._models[key]

    def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.3,
        max_output_tokens: int = 2048,
    ) -> str:
        """Purpose: Issue one bounded generation call and return its text.
        Inputs/Outputs: Input is the prompt and optional system instruction; returns
            stripped text (possibly empty).
        Side Effects / State: Network call; may add a model to the cache.
        Dependencies: genai.GenerativeModel.generate_content with request_options timeout.
        Failure Modes: Any SDK, transport, timeout, or blocked-candidate error is raised as
            GenerationFailure. No retry is attempted.
        If Removed: The pipeline has no generative path.
        Testing Notes: Patch generate_content to raise and assert GenerationFailure.
        """
        # Single attempt; callers fall back instead of retrying.
        model = self._get_model(system_instruction)
        try:
            response = model.generate_content(
                prompt,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                },
                safety_settings=DEFAULT_SAFETY_SETTINGS,
                request_options={"timeout": self._timeout},
            )
            text: Optional[str] = response.text
        except Exception as exc:
            logger.warning("generation failed model=%s error=%s", self._model_name, type(exc).__name__)
            raise GenerationFailure(str(exc)) from exc
        return (text or "").strip()


def _normalize_model_name(name: Optional[str]) -> str:
    """Accept "models/gemini-..." names as shown in the console; trims whitespace."""
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned

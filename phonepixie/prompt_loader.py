from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict


@lru_cache(maxsize=32)
def load_prompt(prompt_path: Path) -> str:
    """Purpose: Read one template from prompts/ as text, dropping a leading BOM.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: Cached per path; prompt files are read once per process.
    Dependencies: Uses Path.read_text/read_bytes; used by classification and synthesis.
    Failure Modes: UnicodeDecodeError triggers a fallback decode with errors ignored,
        which can drop invalid bytes. A missing file raises OSError.
    If Removed: Prompt loading fails and every generative call is skipped.
    Testing Notes: A template saved with a BOM renders without a stray U+FEFF.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        raw = prompt_path.read_bytes()
        text = raw.decode("utf-8", errors="ignore")
        return text.lstrip("\ufeff")


def render_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace every <<KEY>> marker in a template with its value."""
    rendered = template
    for key, value in values.items():
        rendered = rendered.replace(f"<<{key}>>", value)
    return rendered

# services/prop_generator.py
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI

from scene.props import PropCategory

logger = logging.getLogger(__name__)

# Configuration
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
PROP_GENERATION_TIMEOUT = float(os.environ.get("PROP_GENERATION_TIMEOUT", "60"))

SYSTEM_PROMPT = """You draw simple gym props as SVG for a 2D pose animator.
Given a description, return JSON with:
{
  "name": "<short name for the prop>",
  "path": "<SVG path data (the d attribute), centered around 0,0>",
  "viewBox": "<viewBox attribute, e.g. '-50 -50 100 100'>",
  "category": "<one of FREE_WEIGHT, BAR, CABLE, FIXTURE>"
}

Use FREE_WEIGHT for anything held and carried in one hand (dumbbells,
kettlebells, plates), BAR for bars gripped with both hands, CABLE for
cable/handle attachments and FIXTURE for anything that stays put (benches,
racks, boxes). Keep the path clean with a low node count."""


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one prop generation request; failures carry `error`."""
    ok: bool
    name: str = ""
    path: str = ""
    view_box: str = ""
    category: Optional[PropCategory] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(ok=False, error=error)


def create_client() -> OpenAI:
    if not OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set.")
    return OpenAI(api_key=OPENAI_API_KEY, timeout=PROP_GENERATION_TIMEOUT)


def parse_response(content: Optional[str]) -> GenerationResult:
    """Turn the model's JSON reply into a GenerationResult."""
    if not content:
        return GenerationResult.failure("Empty response from prop generator")

    try:
        data: Any = json.loads(content)
    except json.JSONDecodeError as e:
        return GenerationResult.failure(f"Prop generator returned invalid JSON: {e}")
    if not isinstance(data, dict):
        return GenerationResult.failure("Prop generator returned a non-object response")

    missing = [key for key in ("name", "path", "viewBox") if not data.get(key)]
    if missing:
        return GenerationResult.failure(f"Prop generator response missing: {', '.join(missing)}")

    return GenerationResult(
        ok=True,
        name=str(data["name"]),
        path=str(data["path"]),
        view_box=str(data["viewBox"]),
        category=PropCategory.parse(data.get("category")),
    )


def generate_prop(description: str, client: Optional[OpenAI] = None) -> GenerationResult:
    """
    Ask the model for an SVG prop matching `description`.

    Never raises; every failure comes back as GenerationResult(ok=False).
    """
    if not description or not description.strip():
        return GenerationResult.failure("A prop description is required")

    try:
        client = client or create_client()
        response = client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": description.strip()},
            ],
            response_format={"type": "json_object"},
            temperature=0.3,
        )
        content = response.choices[0].message.content
    except Exception as e:
        logger.error(f"Error generating prop with OpenAI: {e}")
        return GenerationResult.failure(str(e))

    result = parse_response(content)
    if result.ok:
        logger.info(f"Generated prop '{result.name}' ({result.category.value})")
    else:
        logger.warning(result.error)
    return result

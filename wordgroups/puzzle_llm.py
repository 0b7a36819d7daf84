import os
import re
import json
import logging
from typing import Optional

import httpx

from . import config
from .errors import GenerationError

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

SYSTEM_PROMPT = (
    "You are a puzzle generator creating word connection puzzles. Each puzzle has 16 words "
    "divided into 4 hidden groups of 4 words each; each group shares a specific connection. "
    "Always return STRICT JSON only (no markdown, no code fences, no prose)."
)


def _build_prompt(target_difficulty: Optional[str] = None) -> dict:
    difficulty_line = (
        f"Aim for an overall {target_difficulty} puzzle.\n" if target_difficulty else ""
    )
    user = (
        "Generate a new word connections puzzle.\n\n"
        "REQUIREMENTS:\n"
        "1) The 4 categories MUST span different thematic domains. Never make every category the same\n"
        "   kind of thing (e.g. all animals, all food).\n"
        "2) Mix connection types: semantic (types of X), functional (purpose/use), contextual (where found),\n"
        "   structural (word patterns, e.g. words that follow FIRE), cultural references, wordplay.\n"
        "3) Use exactly one category per color, from most obvious to least obvious:\n"
        "   yellow (easy), green (medium), blue (tricky), purple (hard).\n"
        "4) Every word is a single UPPERCASE token and appears in exactly one category; 16 distinct words.\n"
        "5) Include red herrings: words that look like they could fit another category.\n"
        f"{difficulty_line}"
        "OUTPUT a STRICT JSON OBJECT with this structure:\n"
        "{\n"
        '  "categories": [\n'
        '    {"name": "Category name", "words": ["W1", "W2", "W3", "W4"],\n'
        '     "color": "yellow|green|blue|purple", "reasoning": "Brief explanation of the connection"}\n'
        "  ],\n"
        '  "overall_reasoning": "How the puzzle achieves diversity across domains and connection types"\n'
        "}\n"
    )
    return {
        "model": config.openrouter_model(),
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ],
        "temperature": 0.9,
        "response_format": {"type": "json_object"},
    }


def extract_json_object(text: str) -> dict:
    """Pull the outermost JSON object out of a model reply."""
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise GenerationError("Failed to parse JSON from model response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError("Model response is not a JSON object")
    return data


async def generate_puzzle_content(target_difficulty: Optional[str] = None,
                                  client: Optional[httpx.AsyncClient] = None) -> dict:
    """Ask the model for four categories; returns the parsed JSON object unvalidated."""
    api_key = os.getenv("OPENROUTER_API_KEY")
    if not api_key:
        raise GenerationError("OPENROUTER_API_KEY not set (.env not loaded or variable missing)")
    headers = {
        "Authorization": f"Bearer {api_key}",
        "HTTP-Referer": os.environ.get("OPENROUTER_REFERER", "https://example.com"),
        "X-Title": os.environ.get("OPENROUTER_TITLE", "WordGroups Puzzle Generator"),
        "Content-Type": "application/json",
    }
    body = _build_prompt(target_difficulty)
    logger.info(f"Generating puzzle with {body['model']} (target difficulty: {target_difficulty or 'any'})")
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=60) as own_client:
                r = await own_client.post(OPENROUTER_URL, headers=headers, json=body)
        else:
            r = await client.post(OPENROUTER_URL, headers=headers, json=body)
        r.raise_for_status()
        data = r.json()
        content = data["choices"][0]["message"]["content"]
    except httpx.HTTPError as e:
        logger.error(f"Puzzle generation request failed: {e}")
        raise GenerationError(f"LLM request failed: {e}") from e
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise GenerationError(f"Unexpected response format from LLM: {e}") from e
    return extract_json_object(content)

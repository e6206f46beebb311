# LLM Service — Perplexity API integration
# One role:
#   parse_search_query — turn "cheap food tours in rome this weekend" into
#   structured experience filters
# Without an API key, or on any failure, the caller gets {} and falls back
# to a plain text search.

import json
import logging

from openai import OpenAI

from config import DURATION_RANGES, PERPLEXITY_API_KEY
from models.schemas import FilterState

logger = logging.getLogger(__name__)

client = OpenAI(
    api_key=PERPLEXITY_API_KEY,
    base_url="https://api.perplexity.ai"
) if PERPLEXITY_API_KEY else None

MODEL = "llama-3.1-sonar-small-128k-online"

PARSE_SYSTEM = """
Extract experience search filters from user text.
Return ONLY valid JSON with exactly these fields:
{
  "category": "string or null",
  "city": "string or null",
  "price_max": number_in_major_currency_units_or_null,
  "duration": "short|half-day|full-day|multi-day|null",
  "min_rating": number_between_1_and_5_or_null,
  "search": "remaining keywords or null"
}
Return no extra text, only the JSON object.
"""


def parse_search_query(text: str) -> dict:
    """Use LLM to extract experience filters from natural language."""
    if not client or not text.strip():
        return {}
    try:
        r = client.chat.completions.create(
            model=MODEL,
            messages=[
                {"role": "system", "content": PARSE_SYSTEM},
                {"role": "user",   "content": text}
            ],
            temperature=0
        )
        raw = r.choices[0].message.content.strip()
        if "```" in raw:
            raw = raw.split("```")[1].lstrip("json").strip()
        parsed = json.loads(raw)
        return parsed if isinstance(parsed, dict) else {}
    except Exception as e:
        logger.warning("Search query parsing failed: %s", e)
        return {}


def filter_state_from_text(text: str, base: FilterState = None) -> FilterState:
    """Merge LLM-parsed fields into `base`; unparsed text becomes a plain search."""
    state  = (base or FilterState()).model_copy(deep=True)
    parsed = parse_search_query(text)
    if not parsed:
        state.search = text.strip() or None
        return state

    if parsed.get("category") and parsed["category"] not in state.categories:
        state.categories.append(parsed["category"])
    if parsed.get("city") and parsed["city"] not in state.cities:
        state.cities.append(parsed["city"])
    if isinstance(parsed.get("price_max"), (int, float)) and parsed["price_max"] > 0:
        state.price_max = int(round(parsed["price_max"] * 100))
    if parsed.get("duration") in DURATION_RANGES:
        state.duration = parsed["duration"]
    if isinstance(parsed.get("min_rating"), (int, float)) and 0 < parsed["min_rating"] <= 5:
        state.min_rating = float(parsed["min_rating"])

    state.search = parsed.get("search") or None
    return state

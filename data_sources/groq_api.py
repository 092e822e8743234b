"""
Async Groq API Client
Intent-specific narrative (pros, cons, summary) from an LLM chat completion.
Any failure returns None so the caller keeps its rule-based narrative.
"""

import os
import json
import asyncio
import aiohttp
from typing import Dict, List, Optional

from .error_handling import APIError, handle_api_timeout
from logging_config import get_logger

logger = get_logger(__name__)

GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "llama-3.3-70b-versatile"
REQUEST_TIMEOUT_S = 10
TEMPERATURE = 0.3
MAX_TOKENS = 600
MAX_POIS_IN_DIGEST = 100
EXAMPLES_PER_CATEGORY = 3

INTENT_PROMPTS: Dict[str, str] = {
    "moving_family": """The user is a FAMILY considering moving to this area. Focus on:
- School quality and proximity (mention any schools nearby)
- Safety for children (parks with playgrounds, sidewalks, crime rates)
- Family-friendly amenities (pediatricians, childcare, family restaurants)
- Neighborhood stability and community feel
- Grocery stores for family shopping
- Healthcare access (urgent care, hospitals)""",

    "moving_single": """The user is a SINGLE PROFESSIONAL considering moving here. Focus on:
- Nightlife and social scene (bars, restaurants, cafes for meeting people)
- Walkability and transit for car-free living
- Fitness options (gyms, yoga studios, running paths, parks)
- Dating scene and social opportunities
- Coffee shops and coworking-friendly spots
- Proximity to entertainment and dining variety""",

    "visiting": """The user is a TOURIST/VISITOR planning a trip. Focus on:
- Restaurant and dining options (variety, quality, unique local spots)
- Entertainment and attractions
- Safety for tourists (especially at night, in unfamiliar areas)
- Public transit for getting around without a car
- Unique local experiences and things to do
- Walkability for exploring on foot""",

    "driving_through": """The user is DRIVING THROUGH this area. Focus on:
- Gas station availability
- Fast food and quick dining options
- Rest stops and convenience stores
- Safety of the area (especially at night)
- Easy highway access
- Quick amenities (bathrooms, coffee)""",

    "investment": """The user is evaluating this area for INVESTMENT PROPERTY. Focus on:
- Safety trends and crime trajectory (is it improving or declining?)
- School quality (strongly affects property values)
- Development and growth indicators
- Transit access improvements
- Amenity density (walkability drives property value)
- Overall neighborhood quality score""",

    "curious": """The user is JUST CURIOUS about this neighborhood. Provide a balanced overview:
- Overall livability summary
- Key strengths of the area
- Key weaknesses or considerations
- Who would love this area (ideal resident profile)
- Who might want to look elsewhere
- Notable unique features""",
}

SEARCH_INTENTS = tuple(INTENT_PROMPTS.keys())
DEFAULT_INTENT = "curious"

SYSTEM_PROMPT_TEMPLATE = """You are a neighborhood analyst for CityPulse, a location intelligence app. Generate personalized insights based on the user's specific intent and the provided data.

{intent_prompt}

RESPONSE FORMAT:
Return a JSON object with exactly this structure:
{{
  "pros": ["specific highlight 1", "specific highlight 2", "specific highlight 3"],
  "cons": ["specific consideration 1", "specific consideration 2"],
  "summary": "One personalized sentence summary for this user type"
}}

RULES:
1. Use SPECIFIC data from the context (mention actual numbers, scores, business names)
2. Tailor every insight to the user's stated intent - what matters to THEM
3. Be concise but specific (max 15 words per bullet)
4. Include 3-5 pros and 2-4 cons
5. Never invent data not provided - only use what's in the context
6. If data is limited, acknowledge it honestly
7. Make the summary actionable and personalized to the intent"""

# Global session for connection reuse
_session = None


def _get_api_key() -> str:
    return os.getenv("GROQ_API_KEY", "")


def is_groq_configured() -> bool:
    return bool(_get_api_key())


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_S, connect=5)
        _session = aiohttp.ClientSession(timeout=timeout)
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def build_poi_summary(pois: List) -> str:
    """Category counts with up to three example names, most common first."""
    categories: Dict[str, Dict] = {}
    for poi in pois[:MAX_POIS_IN_DIGEST]:
        entry = categories.setdefault(poi.category or "other", {"count": 0, "examples": []})
        entry["count"] += 1
        if len(entry["examples"]) < EXAMPLES_PER_CATEGORY and poi.name:
            entry["examples"].append(poi.name)

    if not categories:
        return "- No POI data available"

    lines = []
    for category, entry in sorted(categories.items(), key=lambda item: item[1]["count"], reverse=True):
        examples = f" (e.g., {', '.join(entry['examples'])})" if entry["examples"] else ""
        lines.append(f"- {category}: {entry['count']}{examples}")
    return "\n".join(lines)


def build_data_context(safety: Dict, mobility: Dict, amenities: Dict,
                       pois: List, location: Dict) -> str:
    """Plain-text data digest sent as the user message."""
    highlights = amenities.get("highlights") or {}
    vs_national = safety["vs_national"]
    breakdown = safety["breakdown"]
    food_desert = "YES - Limited grocery access within 1 mile" if amenities.get("is_food_desert") else "No"

    return f"""LOCATION: {location.get('city') or 'Unknown'}, {location.get('county') or 'Unknown'} County (ZIP: {location.get('zip_code') or 'unknown'})

SAFETY DATA:
- Overall Safety Score: {safety['overall']}/100 (Grade: {safety['grade']})
- Risk Level: {safety['risk_level']}
- vs National Average: {'+' if vs_national > 0 else ''}{vs_national}%
- Violent Crime Rate: {safety['crime_rates']['violent']:.1f} per 100k
- Property Crime Rate: {safety['crime_rates']['property']:.1f} per 100k
- Crime Trend: {safety['trend']}
- Breakdown: Murder {breakdown['murder']}/100, Robbery {breakdown['robbery']}/100, Assault {breakdown['assault']}/100, Burglary {breakdown['burglary']}/100, Theft {breakdown['theft']}/100

MOBILITY DATA:
- Walk Score: {mobility['walk_score']['score']}/100 ({mobility['walk_score']['description']})
- Transit Score: {mobility['transit_score']['score']}/100 ({mobility['transit_score']['description']})
- Bike Score: {mobility['bike_score']['score']}/100 ({mobility['bike_score']['description']})

AMENITIES DATA:
- Overall Amenities Score: {amenities['overall']}/100
- Food Desert: {food_desert}
- Total Points of Interest: {highlights.get('total_pois', 0)}
- Grocery Stores: {highlights.get('grocery_stores', 0)}
- Restaurants: {highlights.get('restaurants', 0)}
- Healthcare Facilities: {highlights.get('healthcare', 0)}
- Parks: {highlights.get('parks', 0)}
- Gyms/Fitness: {highlights.get('gyms', 0)}

NEARBY PLACES BY CATEGORY:
{build_poi_summary(pois)}"""


def validate_insights(parsed) -> Optional[Dict]:
    """
    Accept {pros: [...], cons: [...], summary?} with at least two pros and
    one con, every item a non-empty string. Returns the cleaned dict or None.
    """
    if not isinstance(parsed, dict):
        return None
    pros, cons = parsed.get("pros"), parsed.get("cons")
    if not isinstance(pros, list) or not isinstance(cons, list):
        return None
    if not all(isinstance(item, str) and item.strip() for item in pros + cons):
        return None
    if len(pros) < 2 or len(cons) < 1:
        return None

    summary = parsed.get("summary")
    result = {"pros": [p.strip() for p in pros], "cons": [c.strip() for c in cons]}
    if isinstance(summary, str) and summary.strip():
        result["summary"] = summary.strip()
    return result


@handle_api_timeout(timeout_seconds=REQUEST_TIMEOUT_S)
async def _chat_completion(system_prompt: str, user_content: str, api_key: str) -> Optional[str]:
    """POST one chat completion; returns the message content."""
    session = await get_session()
    body = {
        "model": os.getenv("GROQ_MODEL", DEFAULT_MODEL),
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
        "temperature": TEMPERATURE,
        "max_tokens": MAX_TOKENS,
        "response_format": {"type": "json_object"},
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    async with session.post(GROQ_API_URL, json=body, headers=headers) as resp:
        if resp.status != 200:
            raise APIError(f"Groq returned {resp.status}", "groq", resp.status)
        data = await resp.json(content_type=None)
    choices = (data or {}).get("choices") or [{}]
    return (choices[0].get("message") or {}).get("content")


async def generate_ai_insights(intent: str, safety: Dict, mobility: Dict, amenities: Dict,
                               pois: List, location: Dict) -> Optional[Dict]:
    """
    Generate personalized pros/cons/summary for an intent.

    Returns None if not configured, on any error, or when the reply fails
    validation; the caller then uses its rule-based narrative.
    """
    api_key = _get_api_key()
    if not api_key:
        logger.info("Groq API key not configured, using rule-based insights")
        return None

    system_prompt = SYSTEM_PROMPT_TEMPLATE.format(
        intent_prompt=INTENT_PROMPTS.get(intent, INTENT_PROMPTS[DEFAULT_INTENT])
    )
    data_context = build_data_context(safety, mobility, amenities, pois, location)

    try:
        content = await _chat_completion(system_prompt, data_context, api_key)
    except APIError as e:
        if e.status_code == 401:
            logger.error("Groq: 401, API key is invalid", extra={"api_name": "groq", "status_code": 401})
        elif e.status_code == 429:
            logger.warning("Groq: rate limited (429), falling back to rule-based",
                           extra={"api_name": "groq", "status_code": 429})
        else:
            logger.error(f"Groq API error: {e}", extra={"api_name": "groq", "status_code": e.status_code})
        return None
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"Groq request failed: {type(e).__name__}: {e}",
                     extra={"api_name": "groq", "error_type": type(e).__name__})
        return None

    if not content:
        logger.warning("Groq returned empty content, falling back")
        return None

    try:
        parsed = json.loads(content)
    except ValueError:
        logger.warning("Groq returned non-JSON content, falling back")
        return None

    insights = validate_insights(parsed)
    if insights is None:
        logger.warning("Groq returned invalid or too few insights, falling back")
        return None

    logger.info(f"Groq insights generated for intent: {intent}", extra={"api_name": "groq"})
    return insights

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import os
import time
from typing import Dict, List, Optional

# Load environment variables before modules read their configuration
load_dotenv()

from logging_config import setup_logging, get_logger
from data_sources.cache import get_pulse_cache
from data_sources.error_handling import InputInvalidError, check_api_credentials
from data_sources.foursquare_api import get_foursquare_usage
from data_sources.groq_api import SEARCH_INTENTS, is_groq_configured
from pillars.vibe import WEIGHT_PRESETS, list_weight_presets
import pulse

# Configure logging
setup_logging(level=os.getenv("LOG_LEVEL", "INFO"),
              json_format=os.getenv("LOG_JSON", "1").lower() in ("1", "true", "yes"))
logger = get_logger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="CityPulse API",
    description="Location livability analysis for Georgia, USA: safety, mobility, amenities and vibe",
    version=VERSION
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class WeightOverrides(BaseModel):
    safety_weight: Optional[float] = Field(None, ge=0, le=1)
    walkability_weight: Optional[float] = Field(None, ge=0, le=1)
    transit_weight: Optional[float] = Field(None, ge=0, le=1)
    amenities_weight: Optional[float] = Field(None, ge=0, le=1)


class AnalyzeRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    weights: Optional[WeightOverrides] = None
    weight_preset: Optional[str] = None
    intent: Optional[str] = None


class AnalyzeAddressRequest(BaseModel):
    address: str = Field(..., min_length=1)
    weights: Optional[WeightOverrides] = None
    weight_preset: Optional[str] = None
    intent: Optional[str] = None


class CompareLocation(BaseModel):
    """Either an address or a coordinate pair."""
    address: Optional[str] = Field(None, min_length=3)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class CompareRequest(BaseModel):
    addresses: Optional[List[str]] = Field(None, min_length=2, max_length=4)
    locations: Optional[List[CompareLocation]] = Field(None, min_length=2, max_length=4)
    weights: Optional[WeightOverrides] = None
    weight_preset: Optional[str] = None


def _weights_dict(weights: Optional[WeightOverrides]) -> Optional[Dict]:
    if weights is None:
        return None
    return {key: value for key, value in weights.model_dump().items() if value is not None} or None


@app.exception_handler(InputInvalidError)
async def input_invalid_handler(request: Request, exc: InputInvalidError):
    logger.warning(f"Rejected request: {exc}", extra={"error_type": "input_invalid"})
    return JSONResponse(status_code=400, content={"success": False, "detail": str(exc)})


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "service": "CityPulse API",
        "status": "running",
        "version": VERSION,
        "coverage": "Georgia, USA",
        "endpoints": {
            "analyze": "POST /pulse/analyze",
            "analyze_address": "POST /pulse/analyze-address",
            "compare": "POST /pulse/compare",
            "autocomplete": "GET /pulse/autocomplete?q=",
            "weight_presets": "GET /pulse/weight-presets",
            "docs": "/docs"
        }
    }


@app.post("/pulse/analyze")
async def analyze(body: AnalyzeRequest):
    """
    Analyze a coordinate.

    Returns the pulse envelope (safety, mobility, amenities, vibe, nearby
    POIs, data quality) and whether it was served from cache.
    """
    start_time = time.time()
    request_id = f"req_{int(start_time * 1000)}"
    result = await pulse.analyze_location(
        body.lat, body.lng,
        weights=_weights_dict(body.weights),
        weight_preset=body.weight_preset,
        intent=body.intent,
        request_id=request_id,
    )
    return {"success": True, **result}


@app.post("/pulse/analyze-address")
async def analyze_address(body: AnalyzeAddressRequest):
    """Forward geocode an address, then analyze it."""
    start_time = time.time()
    request_id = f"req_{int(start_time * 1000)}"
    result = await pulse.analyze_address(
        body.address,
        weights=_weights_dict(body.weights),
        weight_preset=body.weight_preset,
        intent=body.intent,
        request_id=request_id,
    )
    return {"success": True, **result}


@app.post("/pulse/compare")
async def compare(body: CompareRequest):
    """Analyze 2-4 addresses or coordinates and report the winner."""
    if body.addresses is not None:
        locations = body.addresses
    elif body.locations is not None:
        locations = [location.model_dump() for location in body.locations]
    else:
        raise InputInvalidError("Provide 2-4 addresses or locations to compare")

    result = await pulse.compare_locations(
        locations,
        weights=_weights_dict(body.weights),
        weight_preset=body.weight_preset,
    )
    return {"success": True, "data": result}


@app.get("/pulse/autocomplete")
async def autocomplete(q: str = "", limit: int = Query(5, ge=1, le=10)):
    """Georgia-bounded address suggestions for a partial query."""
    return {"success": True, "data": await pulse.search_places(q, limit=limit)}


@app.get("/pulse/weight-presets")
def weight_presets():
    """Available weight presets and search intents."""
    return {"success": True, "data": list_weight_presets(), "intents": list(SEARCH_INTENTS)}


@app.get("/health")
def health_check():
    """Detailed health check with provider configuration and usage."""
    credentials = check_api_credentials()

    checks = {
        "geocoding": "✅ Nominatim (no credentials required)",
        "amenities": "✅ Foursquare configured" if credentials["foursquare"] else "⚠️ Foursquare key missing, using OpenStreetMap",
        "osm": "✅ OpenStreetMap Overpass (no credentials required)",
        "narrative": "✅ Groq configured" if is_groq_configured() else "⚠️ Groq key missing, rule-based narrative only",
        "crime": "✅ FBI Crime Data Explorer (static data)",
        "transit": "✅ GTFS static feeds (static data)",
        "cache": "✅ Redis" if credentials["redis"] else "✅ In-memory",
    }

    return {
        "status": "healthy",
        "checks": checks,
        "foursquare_usage": get_foursquare_usage(),
        "cache_stats": get_pulse_cache().stats(),
        "weight_presets": list(WEIGHT_PRESETS.keys()),
        "version": VERSION
    }


@app.post("/cache/clear")
def clear_cache_endpoint():
    """Clear cached analyses."""
    try:
        removed = get_pulse_cache().clear()
        return {
            "status": "success",
            "message": f"Cleared {removed} cached analyses"
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Cache clear failed: {e}")


@app.get("/cache/stats")
def cache_stats_endpoint():
    """Get cache statistics and metered provider usage."""
    try:
        return {
            "status": "success",
            "cache_stats": get_pulse_cache().stats(),
            "foursquare_usage": get_foursquare_usage()
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Cache stats failed: {e}")


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize async resources on startup."""
    logger.info("Starting CityPulse API server")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up async resources on shutdown."""
    logger.info("Shutting down CityPulse API server")
    # Close async sessions
    from data_sources.async_geocoding import close_session as close_geocoding_session
    from data_sources.async_osm_api import close_session as close_osm_session
    from data_sources.foursquare_api import close_session as close_foursquare_session
    from data_sources.groq_api import close_session as close_groq_session

    await close_geocoding_session()
    await close_osm_session()
    await close_foursquare_session()
    await close_groq_session()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

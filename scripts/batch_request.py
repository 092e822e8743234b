#!/usr/bin/env python3
"""
Script to make batch pulse requests against a running CityPulse server
Posts each location to /pulse/analyze (coordinates) or /pulse/analyze-address (strings)
"""
import requests
import json
import sys
import time

DEFAULT_BASE_URL = "http://localhost:8000"


def make_pulse_request(location, base_url=DEFAULT_BASE_URL, intent=None, weight_preset=None):
    """
    Make a single pulse request

    Args:
        location: (lat, lng) tuple or an address string
        base_url: Base URL of the API server
        intent: Optional search intent
        weight_preset: Optional weight preset name
    """
    if isinstance(location, str):
        url = f"{base_url}/pulse/analyze-address"
        payload = {"address": location}
    else:
        lat, lng = location
        url = f"{base_url}/pulse/analyze"
        payload = {"lat": lat, "lng": lng}

    if intent:
        payload["intent"] = intent
    if weight_preset:
        payload["weight_preset"] = weight_preset

    try:
        response = requests.post(url, json=payload, timeout=120)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        print(f"Error making request for {location}: {e}")
        if getattr(e, "response", None) is not None:
            print(f"Response status: {e.response.status_code}")
            print(f"Response body: {e.response.text}")
        return None


def summarize(result):
    """Pull the headline numbers out of a pulse response."""
    data = result.get("data") or {}
    vibe = data.get("vibe_score") or {}
    return {
        "zip_code": (data.get("location") or {}).get("zip_code"),
        "overall": vibe.get("overall"),
        "label": vibe.get("label"),
        "cached": result.get("cached", False),
    }


def make_batch_requests(locations, base_url=DEFAULT_BASE_URL, delay=2, intent=None, weight_preset=None):
    """
    Make pulse requests for multiple locations

    Args:
        locations: List of (lat, lng) tuples or address strings
        base_url: Base URL of the API server
        delay: Delay between requests in seconds
    """
    print(f"Making batch requests to {base_url}")
    print(f"Locations: {locations}")
    print("-" * 80)

    results = []
    for i, location in enumerate(locations):
        print(f"\n[{i+1}/{len(locations)}] Processing: {location}")
        result = make_pulse_request(location, base_url, intent=intent, weight_preset=weight_preset)
        if result:
            results.append({
                "location": location,
                "success": True,
                "result": result
            })
            print(f"✓ Success: {summarize(result)}")
        else:
            results.append({
                "location": location,
                "success": False,
                "result": None
            })
            print("✗ Failed")

        # Add delay between requests (except for last one)
        if i < len(locations) - 1:
            time.sleep(delay)

    print("\n" + "=" * 80)
    print("BATCH SUMMARY")
    print("=" * 80)
    print(json.dumps([
        {"location": r["location"], "success": r["success"],
         "summary": summarize(r["result"]) if r["success"] else None}
        for r in results
    ], indent=2))

    return results


if __name__ == "__main__":
    base_url = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_BASE_URL
    locations = [
        (33.7540, -84.3917),
        (33.7815, -84.3830),
        "Decatur Square, Decatur GA",
        "Alpharetta GA",
    ]

    make_batch_requests(locations, base_url=base_url)

from unittest.mock import MagicMock, patch

import requests

from scripts import batch_request


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


PULSE = {"success": True, "cached": False,
         "data": {"location": {"zip_code": "30303"}, "vibe_score": {"overall": 74, "label": "urban_oasis"}}}


def test_coordinates_and_addresses_use_matching_endpoints():
    post = MagicMock(return_value=_response(PULSE))
    with patch.object(batch_request.requests, "post", post), patch.object(batch_request.time, "sleep"):
        results = batch_request.make_batch_requests([(33.754, -84.3917), "Decatur GA"],
                                                    base_url="http://api", intent="visiting")

    assert [r["success"] for r in results] == [True, True]
    first, second = post.call_args_list
    assert first.args[0] == "http://api/pulse/analyze"
    assert first.kwargs["json"] == {"lat": 33.754, "lng": -84.3917, "intent": "visiting"}
    assert second.args[0] == "http://api/pulse/analyze-address"
    assert second.kwargs["json"] == {"address": "Decatur GA", "intent": "visiting"}


def test_failed_request_does_not_stop_batch():
    post = MagicMock(side_effect=[requests.exceptions.ConnectionError("refused"), _response(PULSE)])
    with patch.object(batch_request.requests, "post", post), patch.object(batch_request.time, "sleep") as sleep:
        results = batch_request.make_batch_requests(["Athens GA", "Macon GA"], delay=0)

    assert [r["success"] for r in results] == [False, True]
    assert results[0]["result"] is None
    sleep.assert_called_once_with(0)


def test_summarize():
    assert batch_request.summarize(PULSE) == {"zip_code": "30303", "overall": 74, "label": "urban_oasis", "cached": False}

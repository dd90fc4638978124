import httpx
import pytest

from opsportal.errors import InvalidArgumentError
from opsportal.services.geofence import haversine_distance, inside_geofence
from opsportal.services.geolocation import (
    ReverseGeocoder,
    describe_location,
    format_coordinates,
    parse_coordinates,
    validate_coordinates,
)


NOMINATIM_REPLY = {
    "display_name": "MG Road, Bengaluru, Karnataka, India",
    "address": {"road": "MG Road", "city": "Bengaluru", "state": "Karnataka", "country": "India"},
}


def _geocoder(handler):
    return ReverseGeocoder(base_url="https://geo.test/reverse", user_agent="ops-test", transport=httpx.MockTransport(handler))


def test_lookup_maps_address_fields():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        seen["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json=NOMINATIM_REPLY)

    location = _geocoder(handler).lookup(12.9716, 77.5946)

    assert location == {
        "address": "MG Road, Bengaluru, Karnataka, India",
        "city": "Bengaluru",
        "state": "Karnataka",
    }
    assert seen["params"]["lat"] == "12.9716"
    assert seen["params"]["lon"] == "77.5946"
    assert seen["params"]["format"] == "json"
    assert seen["agent"] == "ops-test"


def test_lookup_falls_back_to_town_and_unknown_state():
    def handler(request):
        return httpx.Response(200, json={"display_name": "Somewhere", "address": {"town": "Hosur"}})

    assert _geocoder(handler).lookup(12.7, 77.8) == {"address": "Somewhere", "city": "Hosur", "state": "Unknown State"}


def test_lookup_server_error_returns_none():
    geocoder = _geocoder(lambda request: httpx.Response(503))
    assert geocoder.lookup(12.9716, 77.5946) is None
    assert geocoder.human_readable(12.9716, 77.5946) == "Coordinates: 12.971600, 77.594600"


def test_lookup_network_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert _geocoder(handler).lookup(1.0, 2.0) is None


def test_lookup_without_address_returns_none():
    assert _geocoder(lambda request: httpx.Response(200, json={"error": "Unable to geocode"})).lookup(0.0, 0.0) is None


def test_human_readable_joins_parts():
    geocoder = _geocoder(lambda request: httpx.Response(200, json=NOMINATIM_REPLY))
    assert geocoder.human_readable(12.9716, 77.5946) == "MG Road, Bengaluru, Karnataka, India, Bengaluru, Karnataka"


def test_describe_location_skips_blank_parts():
    location = {"address": "Plant 2", "city": " ", "state": "Karnataka"}
    assert describe_location(location, 0, 0) == "Plant 2, Karnataka"


def test_parse_coordinates_accepts_strings():
    assert parse_coordinates("12.5", "-77") == (12.5, -77.0)


@pytest.mark.parametrize("lat, lng", [(None, 1), ("", 1), ("abc", 1), (91, 0), (0, -181)])
def test_parse_coordinates_rejects(lat, lng):
    with pytest.raises(InvalidArgumentError):
        parse_coordinates(lat, lng)


def test_validate_coordinates_rejects_non_numbers():
    assert validate_coordinates(10, 20)
    assert not validate_coordinates("10", 20)
    assert not validate_coordinates(True, 20)


def test_format_coordinates():
    assert format_coordinates(1.5, -2.25) == "1.500000, -2.250000"


def test_haversine_one_degree_of_latitude():
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)


def test_inside_geofence_uses_default_radius():
    inside, distance, risk = inside_geofence(12.9717, 77.5946, 12.9716, 77.5946)
    assert inside
    assert distance == pytest.approx(11.1, abs=0.5)
    assert not risk

    inside, _, _ = inside_geofence(12.9736, 77.5946, 12.9716, 77.5946)
    assert not inside


def test_inside_geofence_flags_poor_accuracy():
    _, _, risk = inside_geofence(0, 0, 0, 0, radius_m=10, accuracy_m=150)
    assert risk


def test_module_helpers_use_configured_geocoder(monkeypatch):
    from opsportal.services import geolocation

    monkeypatch.setattr(
        geolocation, "get_geocoder", lambda: _geocoder(lambda request: httpx.Response(200, json=NOMINATIM_REPLY))
    )

    assert geolocation.get_location_from_coordinates(12.9716, 77.5946)["city"] == "Bengaluru"
    assert geolocation.get_human_readable_location(12.9716, 77.5946).endswith("Bengaluru, Karnataka")

"""
Integration tests for cached reverse geocoding with a stubbed remote service.
"""

import sys
from pathlib import Path

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.validation import Coordinate
from tracking.geocode import NominatimLookup, ReverseGeocoder
from tracking.location import PlaceInfo

LONDON = Coordinate(latitude=51.5, longitude=-0.1)
MID_ATLANTIC = Coordinate(latitude=30.0, longitude=-40.0)


class CountingLookup:
    def __init__(self, answer=None):
        self.answer = answer
        self.calls = []

    def __call__(self, coord):
        self.calls.append(coord)
        return self.answer


class FakeResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestOfflineOnly:
    """Without a remote lookup the classifier answers every query."""

    def test_classify(self):
        geocoder = ReverseGeocoder()
        assert geocoder.classify(LONDON) == "London, United Kingdom"
        assert geocoder.classify(MID_ATLANTIC) == "North Atlantic Ocean"

    def test_cache_key_rounds(self):
        a = ReverseGeocoder.cache_key(Coordinate(latitude=51.51, longitude=-0.12))
        b = ReverseGeocoder.cache_key(Coordinate(latitude=51.49, longitude=-0.08))
        assert a == b == "51.5,-0.1"


class TestInlineLookup:
    """Remote lookups run on the calling thread when no submit hook is given."""

    def test_remote_answer_is_cached(self):
        lookup = CountingLookup(PlaceInfo(country="England", city="Westminster"))
        geocoder = ReverseGeocoder(lookup=lookup)

        assert geocoder.classify(LONDON) == "Westminster, England"
        assert geocoder.classify(Coordinate(latitude=51.52, longitude=-0.09)) == "Westminster, England"
        assert len(lookup.calls) == 1

    def test_failure_falls_back_and_is_not_retried(self):
        lookup = CountingLookup(None)
        geocoder = ReverseGeocoder(lookup=lookup)

        assert geocoder.classify(LONDON) == "London, United Kingdom"
        assert geocoder.classify(LONDON) == "London, United Kingdom"
        assert len(lookup.calls) == 1

    def test_lookup_exception_falls_back(self):
        """A crashing lookup still yields a place name."""
        calls = []

        def exploding(coord):
            calls.append(coord)
            raise RuntimeError("lookup crashed")

        geocoder = ReverseGeocoder(lookup=exploding)

        assert geocoder.classify(MID_ATLANTIC) == "North Atlantic Ocean"
        assert geocoder.classify(MID_ATLANTIC) == "North Atlantic Ocean"
        assert len(calls) == 1

    def test_unexpected_body_falls_back(self):
        session = FakeSession(FakeResponse(200, []))
        geocoder = ReverseGeocoder(lookup=NominatimLookup(session=session))

        assert geocoder.classify(LONDON) == "London, United Kingdom"

    def test_capacity(self):
        lookup = CountingLookup(PlaceInfo(country="Somewhere"))
        geocoder = ReverseGeocoder(lookup=lookup, max_entries=2)

        for lat in (10.0, 20.0, 30.0):
            geocoder.classify(Coordinate(latitude=lat, longitude=0.0))
        geocoder.classify(Coordinate(latitude=10.0, longitude=0.0))

        assert len(geocoder.cache) == 2
        assert len(lookup.calls) == 4


class TestBackgroundLookup:
    """With a submit hook the caller never waits on the remote service."""

    def test_classifier_answers_until_remote_lands(self):
        jobs = []
        lookup = CountingLookup(PlaceInfo(country="England", city="Westminster"))
        geocoder = ReverseGeocoder(lookup=lookup, submit=jobs.append)

        assert geocoder.classify(LONDON) == "London, United Kingdom"
        assert geocoder.classify(LONDON) == "London, United Kingdom"
        assert len(jobs) == 1
        assert lookup.calls == []

        jobs.pop()()

        assert geocoder.classify(LONDON) == "Westminster, England"
        assert len(lookup.calls) == 1

    def test_crashed_job_caches_classifier_answer(self):
        jobs = []

        def exploding(coord):
            raise RuntimeError("lookup crashed")

        geocoder = ReverseGeocoder(lookup=exploding, submit=jobs.append)
        geocoder.classify(LONDON)
        jobs.pop()()

        assert geocoder.classify(LONDON) == "London, United Kingdom"
        assert jobs == []
        assert geocoder._in_flight == set()


class TestNominatimLookup:
    """Test response parsing for the Nominatim /reverse endpoint."""

    def test_city(self):
        session = FakeSession(FakeResponse(200, {
            "display_name": "Westminster, London, England, United Kingdom",
            "address": {"city": "London", "state": "England", "country": "United Kingdom"},
        }))
        lookup = NominatimLookup(url="https://geo.test/reverse", session=session, user_agent="skytrack-tests")

        info = lookup(LONDON)

        assert info.display_name == "London, United Kingdom"
        assert info.region == "England"
        assert session.headers["User-Agent"] == "skytrack-tests"
        assert session.calls[0]["params"]["lat"] == 51.5
        assert session.calls[0]["params"]["format"] == "jsonv2"

    def test_town_when_no_city(self):
        session = FakeSession(FakeResponse(200, {"address": {"town": "Crawley", "country": "United Kingdom"}}))
        assert NominatimLookup(session=session)(LONDON).city == "Crawley"

    def test_ocean_has_no_address(self):
        session = FakeSession(FakeResponse(200, {"error": "Unable to geocode"}))
        assert NominatimLookup(session=session)(MID_ATLANTIC) is None

    @pytest.mark.parametrize("response", [
        FakeResponse(500, {"error": "oops"}),
        FakeResponse(200, None),
        FakeResponse(200, []),
        requests.exceptions.ConnectionError("refused"),
    ])
    def test_failures_return_none(self, response):
        assert NominatimLookup(session=FakeSession(response))(LONDON) is None

import pytest
import requests

from linkanalysis.core.storage import TTLCache
from linkanalysis.processors.geolocation import GeoLocationService


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        for prefix, response in self.responses.items():
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected url {url}")


IP_API_OK = {
    "status": "success", "country": "Brasil", "regionName": "São Paulo", "city": "Campinas",
    "lat": -22.9, "lon": -47.06, "isp": "Operadora X",
}
IPAPI_CO_OK = {
    "country_name": "Brazil", "region": "Pernambuco", "city": "Recife",
    "latitude": -8.05, "longitude": -34.9, "org": "Operadora Y",
}


def test_first_provider_answers():
    session = FakeSession({"http://ip-api.com": FakeResponse(IP_API_OK)})
    service = GeoLocationService(session=session)

    location = service.lookup(" 200.1.2.3 ")

    assert location.city == "Campinas"
    assert location.provider == "ip-api.com"
    assert session.urls == ["http://ip-api.com/json/200.1.2.3"]


@pytest.mark.parametrize("first", [
    FakeResponse({"status": "fail", "message": "private range"}),
    FakeResponse({}, status_code=503),
    requests.ConnectionError("offline"),
])
def test_falls_back_to_second_provider(first):
    session = FakeSession({"http://ip-api.com": first, "https://ipapi.co": FakeResponse(IPAPI_CO_OK)})

    location = GeoLocationService(session=session).lookup("200.1.2.3")

    assert location.city == "Recife"
    assert location.provider == "ipapi.co"


def test_all_providers_fail():
    session = FakeSession({
        "http://ip-api.com": requests.Timeout("slow"),
        "https://ipapi.co": FakeResponse({"error": True, "reason": "Reserved IP Address"}),
    })

    assert GeoLocationService(session=session).lookup("10.0.0.1") is None


def test_cached_lookup_skips_network():
    session = FakeSession({"http://ip-api.com": FakeResponse(IP_API_OK)})
    service = GeoLocationService(session=session, cache=TTLCache())

    first = service.lookup("200.1.2.3")
    second = service.lookup("200.1.2.3")

    assert first == second
    assert len(session.urls) == 1


def test_blank_ip():
    session = FakeSession({})

    assert GeoLocationService(session=session).lookup("  ") is None
    assert session.urls == []

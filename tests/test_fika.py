import asyncio

import pytest

from fika_presence.fika import (
    FikaClient,
    FikaError,
    FikaTransportError,
    parse_players,
    parse_presence,
)
from fika_presence.models import OnlinePlayer, PresenceEntry


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def json(self, content_type=None):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeRequest:
    def __init__(self, result):
        self.result = result

    async def __aenter__(self):
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, results):
        self.results = dict(results)
        self.calls = []

    def request(self, method, url, headers=None):
        self.calls.append((method, url, headers))
        path = url.split("6969", 1)[1]
        return FakeRequest(self.results[path])


def make_client(results):
    session = FakeSession(results)
    client = FikaClient("https://127.0.0.1:6969/", "secret", session=session)
    return client, session


def test_parse_players_maps_api_fields():
    payload = {
        "players": [
            {"profileId": "p1", "nickname": "Ann", "location": 5},
            {"profileId": "p2", "nickname": "Bob"},
            "garbage",
        ]
    }

    assert parse_players(payload) == [
        OnlinePlayer(profile_id="p1", nickname="Ann", location_id=5),
        OnlinePlayer(profile_id="p2", nickname="Bob", location_id=0),
    ]
    assert parse_players({"players": None}) == []
    assert parse_players([]) == []


def test_parse_presence_reads_nested_side_and_skips_bad_entries():
    payload = [
        {
            "nickname": "Ann",
            "level": 42,
            "activity": 1,
            "activityStartedTimestamp": 1700000000,
            "raidInformation": {"side": 0, "location": "bigmap"},
        },
        {"nickname": "Bob", "activity": 3, "raidInformation": None},
        {"nickname": "Carl", "level": "not a number"},
        7,
    ]

    assert parse_presence(payload) == [
        PresenceEntry("Ann", 42, 1, 1700000000, 0),
        PresenceEntry("Bob", 0, 3, 0, None),
    ]


def test_parse_presence_non_array_is_empty():
    assert parse_presence({"error": "nope"}) == []
    assert parse_presence(None) == []


def test_client_sends_bearer_token_and_compression_header():
    client, session = make_client(
        {
            "/fika/api/players": FakeResponse(
                200, {"players": [{"profileId": "p", "nickname": "Ann", "location": 1}]}
            ),
            "/fika/presence/get": FakeResponse(200, [{"nickname": "Ann", "activity": 3}]),
        }
    )

    players = asyncio.run(client.fetch_players())
    presence = asyncio.run(client.fetch_presence())

    assert players[0].nickname == "Ann"
    assert presence[0].activity == 3
    method, url, headers = session.calls[0]
    assert method == "GET"
    assert url == "https://127.0.0.1:6969/fika/api/players"
    assert headers == {"Authorization": "Bearer secret", "responsecompressed": "0"}


def test_http_error_status_is_not_fatal():
    client, _ = make_client({"/fika/api/players": FakeResponse(401, {})})

    with pytest.raises(FikaError) as excinfo:
        asyncio.run(client.fetch_players())

    assert excinfo.value.status == 401
    assert not isinstance(excinfo.value, FikaTransportError)


def test_timeout_is_a_transport_error():
    client, _ = make_client({"/fika/api/players": asyncio.TimeoutError()})

    with pytest.raises(FikaTransportError):
        asyncio.run(client.fetch_players())


def test_unreadable_body_is_not_fatal():
    client, _ = make_client(
        {"/fika/presence/get": FakeResponse(200, ValueError("bad json"))}
    )

    with pytest.raises(FikaError) as excinfo:
        asyncio.run(client.fetch_presence())

    assert not isinstance(excinfo.value, FikaTransportError)

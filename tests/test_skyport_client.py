from __future__ import annotations

import json

import httpx
import pytest

from thermolight.domain.errors import AuthError, RemoteError
from thermolight.drivers.skyport_client import SkyportClient

STATUS_BODY = {
    "tempIndoor": 21.4,
    "mode": 3,
    "equipmentStatus": 3,
    "fanCirculate": 0,
    "fan": 0,
    "heatSetpoint": 20.0,
    "coolSetpoint": 24.5,
    "scheduleEnabled": True,
    "equipmentCommunication": 0,
}


def make_client(handler) -> SkyportClient:
    return SkyportClient("https://vendor.test", "api-key", transport=httpx.MockTransport(handler))


async def test_authenticate_posts_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"accessToken": "tok", "accessTokenExpiresIn": 900, "tokenType": "Bearer"})

    token, expires = await make_client(handler).authenticate("a@b.c", "integrator")

    assert (token, expires) == ("tok", 900)
    req = seen[0]
    assert req.method == "POST"
    assert req.url.path == "/v1/token"
    assert req.headers["x-api-key"] == "api-key"
    assert req.headers["content-type"] == "application/json"
    assert "authorization" not in req.headers
    assert json.loads(req.content) == {"email": "a@b.c", "integratorToken": "integrator"}


async def test_list_locations_sends_bearer() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer tok"
        return httpx.Response(200, json=[
            {"locationName": "Cabin", "devices": [
                {"id": "T1", "name": "Upstairs", "model": "ONEPLUS", "firmwareVersion": "1.2"},
                {"id": "T2", "model": "ONEPLUS", "firmwareVersion": "1.2"},
            ]},
        ])

    locations = await make_client(handler).list_locations("tok")

    assert locations[0].name == "Cabin"
    assert [t.id for t in locations[0].thermostats] == ["T1", "T2"]
    assert locations[0].thermostats[1].name is None


async def test_get_status_decodes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/devices/T1"
        return httpx.Response(200, json=STATUS_BODY)

    st = await make_client(handler).get_status("tok", "T1")

    assert st.temp_indoor == 21.4
    assert st.equipment_status == 3
    assert st.schedule_enabled is True


async def test_set_mode_body() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        assert request.url.path == "/v1/devices/T1/msp"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "Success"})

    msg = await make_client(handler).set_mode("tok", "T1", 0, 15.0, 27.0)

    assert msg == "Success"
    assert bodies == [{"mode": 0, "heatSetpoint": 15.0, "coolSetpoint": 27.0}]


async def test_set_fan_circulate_body() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/devices/T1/fan"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "Success"})

    await make_client(handler).set_fan_circulate("tok", "T1", True)

    assert bodies == [{"fanCirculate": 1, "fanCirculateSpeed": 1}]


async def test_non_200_raises_remote_error() -> None:
    client = make_client(lambda request: httpx.Response(500, text="oops"))

    with pytest.raises(RemoteError) as excinfo:
        await client.get_status("tok", "T1")

    assert excinfo.value.status_code == 500
    assert not isinstance(excinfo.value, AuthError)


async def test_unauthorized_raises_auth_error() -> None:
    client = make_client(lambda request: httpx.Response(401))

    with pytest.raises(AuthError) as excinfo:
        await client.list_locations("expired")

    assert excinfo.value.status_code == 401


async def test_malformed_body_raises_remote_error() -> None:
    client = make_client(lambda request: httpx.Response(200, json={"mode": 1}))

    with pytest.raises(RemoteError) as excinfo:
        await client.get_status("tok", "T1")

    assert excinfo.value.status_code == 200


async def test_transport_error_raises_remote_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RemoteError) as excinfo:
        await make_client(handler).get_status("tok", "T1")

    assert excinfo.value.status_code is None

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..domain.errors import AuthError, RemoteError
from ..domain.models import DeviceStatus, Location

logger = logging.getLogger(__name__)


class SkyportClient:
    """Stateless client for the thermostat vendor's integrator REST API.

    Every call is one request/response. Non-200 responses and bodies that do
    not decode raise RemoteError (AuthError for 401/403). Retries are the
    caller's business.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        headers = {
            "x-api-key": self._api_key,
            "Content-Type": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, path, headers=self.headers(access_token), json=body)
        except httpx.HTTPError as e:
            raise RemoteError(None, f"{method} {path} failed: {e}") from e

        if resp.status_code in (401, 403):
            raise AuthError(resp.status_code, f"{method} {path} unauthorized")
        if resp.status_code != 200:
            raise RemoteError(resp.status_code, f"{method} {path}")
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(resp.status_code, f"{method} {path} returned malformed body") from e

    async def authenticate(self, email: str, integrator_token: str) -> tuple[str, int]:
        data = await self._request(
            "POST", "/v1/token", body={"email": email, "integratorToken": integrator_token}
        )
        try:
            return str(data["accessToken"]), int(data["accessTokenExpiresIn"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(200, "malformed token response") from e

    async def list_locations(self, access_token: str) -> list[Location]:
        data = await self._request("GET", "/v1/devices", access_token)
        try:
            return [Location.from_json(loc) for loc in data]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(200, "malformed device list") from e

    async def get_status(self, access_token: str, thermostat_id: str) -> DeviceStatus:
        data = await self._request("GET", f"/v1/devices/{thermostat_id}", access_token)
        try:
            return DeviceStatus.from_json(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(200, f"malformed status for {thermostat_id}") from e

    async def set_mode(
        self,
        access_token: str,
        thermostat_id: str,
        mode: int,
        heat_setpoint: float,
        cool_setpoint: float,
    ) -> str:
        data = await self._request(
            "PUT",
            f"/v1/devices/{thermostat_id}/msp",
            access_token,
            body={"mode": int(mode), "heatSetpoint": heat_setpoint, "coolSetpoint": cool_setpoint},
        )
        logger.info("set_mode id=%s mode=%s heat=%.1f cool=%.1f", thermostat_id, mode, heat_setpoint, cool_setpoint)
        return _message(data)

    async def set_fan_circulate(
        self,
        access_token: str,
        thermostat_id: str,
        circulate: bool,
        speed: int = 1,
    ) -> str:
        data = await self._request(
            "PUT",
            f"/v1/devices/{thermostat_id}/fan",
            access_token,
            body={"fanCirculate": 1 if circulate else 0, "fanCirculateSpeed": speed},
        )
        logger.info("set_fan_circulate id=%s circulate=%s speed=%s", thermostat_id, circulate, speed)
        return _message(data)


def _message(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""

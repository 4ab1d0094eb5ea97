from __future__ import annotations
from typing import Optional


class ThermolightError(Exception):
    pass


class RemoteError(ThermolightError):
    """Non-success or malformed response from the vendor API."""

    def __init__(self, status_code: Optional[int], message: str = "") -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class AuthError(RemoteError):
    """Credentials rejected or access token expired."""


class AccessoryUnavailable(ThermolightError):
    """Home, room or light no longer present in the accessory directory."""


class CharacteristicIOError(ThermolightError):
    """Reading or writing a light characteristic failed."""


class ConfigurationIncomplete(ThermolightError):
    """Email, API key or integrator token missing."""

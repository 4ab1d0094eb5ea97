from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="THERMOLIGHT_", extra="ignore")

    app_name: str = "Thermolight"

    # Vendor account (all three required before loading/polling)
    email: str = ""
    api_key: str = ""
    integrator_token: str = ""

    api_base_url: str = "https://integrator-api.daikinskyport.com"
    request_timeout_seconds: float = 10.0

    # Polling
    poll_interval_seconds: int = 180
    settle_delay_seconds: float = 15.0   # vendor eventual-consistency window
    token_safety_margin_seconds: float = 1.0

    # Home platform
    directory_retry_attempts: int = 3
    directory_retry_delay_seconds: float = 1.0
    homes_file: str = ""                 # JSON for the simulated platform; empty = bundled default

    # Manual commands
    auto_heat_setpoint: float = 20.0
    auto_cool_setpoint: float = 24.0
    off_heat_setpoint: float = 15.0
    off_cool_setpoint: float = 27.0
    fan_circulate_speed: int = 1

    # Equipment status boundaries; anything outside these gets the flag colour
    heating_status_codes: list[int] = Field(default_factory=lambda: [3])
    cooling_status_codes: list[int] = Field(default_factory=lambda: [1, 2])
    idle_status_codes: list[int] = Field(default_factory=lambda: [5])

    # Storage
    sqlite_path: str = Field(default="thermolight.db")
    log_file: str = "thermolight.log"

    @property
    def is_configured(self) -> bool:
        return bool(self.email and self.api_key and self.integrator_token)


settings = Settings()

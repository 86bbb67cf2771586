"""Configuration for qqgate components."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PUBLIC_GUILD_MESSAGES = 1 << 30
DIRECT_MESSAGES = 1 << 12


class QQGateConfig(BaseSettings):
    app_id: str = ""
    app_secret: str = ""
    sandbox: bool = False

    api_base: str = "https://api.sgroup.qq.com"
    sandbox_api_base: str = "https://sandbox.api.sgroup.qq.com"
    request_timeout_seconds: float = 10.0

    token_safety_margin_seconds: int = 60
    default_expires_in_seconds: int = 7200

    default_heartbeat_interval_seconds: float = 40.0
    intents: int = PUBLIC_GUILD_MESSAGES | DIRECT_MESSAGES
    shard: list[int] = Field(default_factory=lambda: [0, 1])
    client_os: str = "linux"
    client_name: str = "qqgate"
    channel_tag: str = "qq"

    model_config = SettingsConfigDict(env_prefix="qqgate_")

    @property
    def base_url(self) -> str:
        return self.sandbox_api_base if self.sandbox else self.api_base

    def api_url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

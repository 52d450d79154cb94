"""
Loading and validation of the LinkRelay configuration.

The schema is described with Pydantic; files may be YAML or JSON.  Chat
credentials are never looked up in the process environment here: whoever
builds the config (normally the CLI) passes them in explicitly.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    field_validator,
)

from link_relay import __version__

_TELEGRAM_API = "https://api.telegram.org"


class TelegramConfig(BaseModel):
    """Credentials and endpoint for the chat notification."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    bot_token: SecretStr = Field(..., description="Bot API token.")
    chat_id: str = Field(..., min_length=1, description="Target chat identifier.")
    api_base: HttpUrl = Field(_TELEGRAM_API, validate_default=True, description="Bot API root.")
    timeout: float = Field(5.0, gt=0, description="Timeout for one sendMessage call (seconds).")

    @field_validator("bot_token")
    def _token_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("bot_token must not be empty")
        return v

    def send_message_url(self) -> str:
        base = str(self.api_base).rstrip("/")
        return f"{base}/bot{self.bot_token.get_secret_value()}/sendMessage"


class RelayConfig(BaseModel):
    """Settings of one relay process."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field("0.0.0.0", min_length=1, description="Interface to listen on.")
    port: int = Field(8080, ge=0, le=65535, description="TCP port to listen on.")
    fetch_timeout: float = Field(10.0, gt=0, description="Deadline for fetching a redirect target (seconds).")
    max_body_bytes: int = Field(1024 * 1024, ge=1, description="Read at most this many body bytes.")
    chunk_size: int = Field(8192, ge=1, description="Read size for the streamed body.")
    user_agent: str = Field(f"LinkRelay/{__version__}", min_length=1, description="User-Agent header.")
    fallback_title: str = Field("Redirecting...", description="Title used when the target has none.")
    template_dir: Optional[Path] = Field(None, description="Directory overriding the bundled templates.")
    trust_forwarded_for: bool = Field(True, description="Take the client IP from X-Forwarded-For.")
    telegram: Optional[TelegramConfig] = None

    @field_validator("template_dir")
    def _template_dir_exists(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None and not v.is_dir():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(v))
        return v

    def with_telegram(self, bot_token: str | None, chat_id: str | None) -> RelayConfig:
        """Return a copy carrying explicit chat credentials (no-op if either is missing)."""
        if not bot_token or not chat_id:
            return self
        current = self.telegram
        telegram = TelegramConfig(
            bot_token=bot_token,
            chat_id=chat_id,
            api_base=current.api_base if current else _TELEGRAM_API,
            timeout=current.timeout if current else 5.0,
        )
        return self.model_copy(update={"telegram": telegram})

    def with_overrides(self, **changes: Any) -> RelayConfig:
        """Return a validated copy with the non-``None`` keyword arguments applied."""
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        return RelayConfig(**data)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> RelayConfig:
    """
    Read YAML or JSON and return a validated RelayConfig.

    With ``path=None`` the default ``configs/default.yaml`` is used when it
    exists, otherwise the built-in defaults are returned.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return RelayConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return RelayConfig(**data)


__all__ = ["TelegramConfig", "RelayConfig", "load_config"]

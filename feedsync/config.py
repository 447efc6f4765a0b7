"""Application configuration.

Values are resolved as environment > YAML file > defaults. A ``.env`` file
in the working directory is loaded into the environment first.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from feedsync.errors import ConfigError

LOGGER = logging.getLogger(__name__)

CONFIG_CANDIDATES = (
    "config.yaml",
    "configs/config.yaml",
    "config.local.yaml",
    "configs/config.local.yaml",
)


class BrowserConfig(BaseModel):
    headless: bool = True
    timeout: int = 60_000


class FeishuConfig(BaseModel):
    enabled: bool = False
    app_id: str = ""
    app_secret: str = ""
    app_token: str = ""
    base_url: str = "https://open.feishu.cn"


class LoggingConfig(BaseModel):
    level: str = "INFO"


class DelayConfig(BaseModel):
    min_ms: int = 1000
    max_ms: int = 3000


class AntiBotConfig(BaseModel):
    enabled: bool = True
    delay: DelayConfig = Field(default_factory=DelayConfig)


class MtopConfig(BaseModel):
    app_key: str = "34839810"
    base_url: str = "https://h5api.m.goofish.com/h5"
    timeout: float = 30.0
    cookie: str = ""


class CrawlConfig(BaseModel):
    pages: int = Field(default=10, ge=1)
    min_want: int = Field(default=1, ge=0)
    days: int = Field(default=14, ge=0)
    page_size: int = Field(default=30, ge=1)
    output: str = "feed_result.json"
    detail_retries: int = Field(default=3, ge=1)


class AppConfig(BaseModel):
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    feishu: FeishuConfig = Field(default_factory=FeishuConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    anti_bot: AntiBotConfig = Field(default_factory=AntiBotConfig)
    mtop: MtopConfig = Field(default_factory=MtopConfig)
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)

    def validate_settings(self) -> None:
        """Raise ``ConfigError`` for combinations pydantic cannot catch."""
        delay = self.anti_bot.delay
        if delay.min_ms < 0 or delay.max_ms < 0:
            raise ConfigError("anti_bot.delay bounds must be non-negative")
        if delay.min_ms > delay.max_ms:
            raise ConfigError(f"anti_bot.delay.min_ms ({delay.min_ms}) exceeds max_ms ({delay.max_ms})")
        if self.feishu.enabled and not (self.feishu.app_id and self.feishu.app_secret and self.feishu.app_token):
            raise ConfigError("feishu is enabled but app_id, app_secret or app_token is missing")


# (env var, section, key, parser)
ENV_OVERRIDES = (
    ("BROWSER_HEADLESS", "browser", "headless", "bool"),
    ("BROWSER_TIMEOUT", "browser", "timeout", "int"),
    ("FEISHU_ENABLED", "feishu", "enabled", "bool"),
    ("FEISHU_APP_ID", "feishu", "app_id", "str"),
    ("FEISHU_APP_SECRET", "feishu", "app_secret", "str"),
    ("FEISHU_APP_TOKEN", "feishu", "app_token", "str"),
    ("LOGGING_LEVEL", "logging", "level", "str"),
    ("ANTI_BOT_ENABLED", "anti_bot", "enabled", "bool"),
    ("ANTI_BOT_DELAY_MIN_MS", "anti_bot.delay", "min_ms", "int"),
    ("ANTI_BOT_DELAY_MAX_MS", "anti_bot.delay", "max_ms", "int"),
    ("MTOP_COOKIE", "mtop", "cookie", "str"),
)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_env(name: str, value: str, kind: str) -> Any:
    if kind == "bool":
        return _env_bool(value)
    if kind == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    return value


def find_config_file(explicit: Optional[str | Path] = None, base_dir: Optional[Path] = None) -> Optional[Path]:
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigError(f"config file {path} does not exist")
        return path
    root = base_dir or Path.cwd()
    for candidate in CONFIG_CANDIDATES:
        path = root / candidate
        if path.is_file():
            return path
    return None


def read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def apply_env(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for name, section, key, kind in ENV_OVERRIDES:
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        target = data
        for part in section.split("."):
            node = target.get(part)
            if not isinstance(node, dict):
                node = {}
                target[part] = node
            target = node
        target[key] = _parse_env(name, raw, kind)
    return data


def load_config(
    path: Optional[str | Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    base_dir: Optional[Path] = None,
    dotenv: bool = True,
) -> AppConfig:
    """Load and validate the application config.

    Parameters
    ----------
    path : str or Path, optional
        Explicit YAML file; otherwise the default locations are searched
    environ : mapping, optional
        Environment to read overrides from, ``os.environ`` by default
    base_dir : Path, optional
        Directory searched for config and ``.env`` files
    dotenv : bool
        Load ``.env`` into the process environment before reading it

    Returns
    -------
    AppConfig
        Validated configuration
    """
    root = base_dir or Path.cwd()
    if dotenv and environ is None:
        load_dotenv(root / ".env")

    data: Dict[str, Any] = {}
    config_file = find_config_file(path, root)
    if config_file is not None:
        LOGGER.info("Loading config from %s", config_file)
        data = read_yaml(config_file)

    data = apply_env(data, os.environ if environ is None else environ)
    try:
        config = AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
    config.validate_settings()
    return config

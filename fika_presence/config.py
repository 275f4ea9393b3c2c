import os
import re
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

CONFIG_ENV_KEY = "CONFIG_PATH"
DEFAULT_CONFIG_PATH = "config.yml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
WEBHOOK_URL_RE = re.compile(
    r"discord(?:app)?\.com/api/webhooks/[0-9]{17,20}/[A-Za-z0-9\.\-_]{60,}"
)
SUMMARY_FIELDS = ("online", "in_raid", "other")


class ConfigError(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Invalid configuration:\n{lines}")


@dataclass(frozen=True)
class DiscordSettings:
    webhook_url: str = ""
    username: str = "Fika Status"
    avatar_url: str = ""
    tts: bool = False
    status_message_id: int = 0
    state_file: str = "bot_state.json"


@dataclass(frozen=True)
class FikaSettings:
    base_url: str = "https://127.0.0.1:6969"
    api_key: str = ""
    ignore_ssl_errors: bool = True
    timeout_seconds: int = 10


@dataclass(frozen=True)
class LogMonitorSettings:
    enabled: bool = False
    log_folder_path: str = ""


@dataclass(frozen=True)
class TextSettings:
    title: str = "Fika Server Status"
    no_online_description: str = "🌵💨 _No one is online right now._"
    in_raid_title: str = "⚔️ In Raid"
    in_raid_empty: str = "_Nobody currently in raid._"
    out_of_raid_title: str = "🧩 Playing Tetris"
    out_of_raid_empty: str = "_Everyone online is in raid._"
    boss_title: str = "👑 Boss of the Week"
    footer_prefix: str = "Last updated:"
    summary: str = "**{online} Online | {in_raid} In Raid | {other} Playing Tetris**"


@dataclass(frozen=True)
class IconSettings:
    default_map: str = "🗺️"


@dataclass(frozen=True)
class Config:
    enabled: bool = True
    log_level: str = "INFO"
    config_dir: str = "."
    discord: DiscordSettings = field(default_factory=DiscordSettings)
    fika: FikaSettings = field(default_factory=FikaSettings)
    interval_seconds: int = 30
    log_monitor: LogMonitorSettings = field(default_factory=LogMonitorSettings)
    text: TextSettings = field(default_factory=TextSettings)
    embed_color: int = 3447003
    icons: IconSettings = field(default_factory=IconSettings)
    map_emoji: Mapping[str, str] = field(default_factory=dict)
    location_names: Mapping[str, str] = field(default_factory=dict)
    activity_names: Mapping[str, str] = field(default_factory=dict)
    side_names: Mapping[str, str] = field(default_factory=dict)
    boss_names: Mapping[str, str] = field(default_factory=dict)
    map_names_log: Mapping[str, str] = field(default_factory=dict)

    @property
    def state_path(self) -> Path:
        return Path(self.config_dir) / self.discord.state_file


def config_path_from_env(path: str | None = None) -> str:
    return path or os.environ.get(CONFIG_ENV_KEY, DEFAULT_CONFIG_PATH)


def _section(data: Dict[str, Any], key: str, errors: List[str]) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(f"'{key}' must be a mapping")
        return {}
    return value


def _table(data: Dict[str, Any], key: str, errors: List[str]) -> Dict[str, str]:
    raw = _section(data, key, errors)
    return {str(k): str(v) for k, v in raw.items() if v is not None}


def _str(section: Dict[str, Any], key: str, default: str) -> str:
    value = section.get(key)
    if value is None:
        return default
    return str(value).strip()


def _bool(section: Dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def _int(
    section: Dict[str, Any], key: str, default: int, label: str, errors: List[str]
) -> int:
    value = section.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"{label} must be an integer (got {value!r})")
        return default


def _summary_error(template: str) -> str | None:
    try:
        names = [
            name for _, name, _, _ in string.Formatter().parse(template) if name is not None
        ]
        unknown = [name for name in names if name not in SUMMARY_FIELDS]
        if unknown:
            return f"unknown placeholders {unknown}, allowed: {list(SUMMARY_FIELDS)}"
        template.format(online=0, in_raid=0, other=0)
    except ValueError as exc:
        return str(exc)
    return None


def parse_config(
    data: Dict[str, Any], config_dir: str = ".", check_paths: bool = True
) -> Config:
    """Build a validated Config from parsed YAML.

    Every problem found is collected so the operator sees the full list at
    once; ConfigError is raised if there is at least one. With
    ``check_paths`` off the log folder is not required to exist.
    """
    errors: List[str] = []
    if not isinstance(data, dict):
        raise ConfigError(["Top level of the config file must be a mapping"])

    discord_raw = _section(data, "discord", errors)
    fika_raw = _section(data, "fika", errors)
    update_raw = _section(data, "update", errors)
    monitor_raw = _section(data, "log_monitor", errors)
    text_raw = _section(data, "text", errors)
    colors_raw = _section(data, "colors", errors)
    icons_raw = _section(data, "icons", errors)

    discord_defaults = DiscordSettings()
    discord_settings = DiscordSettings(
        webhook_url=_str(discord_raw, "webhook_url", ""),
        username=_str(discord_raw, "username", discord_defaults.username),
        avatar_url=_str(discord_raw, "avatar_url", ""),
        tts=_bool(discord_raw, "tts", False),
        status_message_id=_int(
            discord_raw, "status_message_id", 0, "discord.status_message_id", errors
        ),
        state_file=_str(discord_raw, "state_file", discord_defaults.state_file)
        or discord_defaults.state_file,
    )
    if not discord_settings.webhook_url:
        errors.append("discord.webhook_url is missing or empty")
    elif not WEBHOOK_URL_RE.search(discord_settings.webhook_url):
        errors.append(
            f"discord.webhook_url is not a Discord webhook URL: {discord_settings.webhook_url}"
        )

    fika_defaults = FikaSettings()
    fika_settings = FikaSettings(
        base_url=_str(fika_raw, "base_url", fika_defaults.base_url).rstrip("/"),
        api_key=_str(fika_raw, "api_key", ""),
        ignore_ssl_errors=_bool(
            fika_raw, "ignore_ssl_errors", fika_defaults.ignore_ssl_errors
        ),
        timeout_seconds=_int(
            fika_raw,
            "timeout_seconds",
            fika_defaults.timeout_seconds,
            "fika.timeout_seconds",
            errors,
        ),
    )
    if not fika_settings.api_key:
        errors.append("fika.api_key is missing or empty")
    if not fika_settings.base_url:
        errors.append("fika.base_url is missing or empty")

    log_level = str(data.get("log_level") or "INFO").upper()
    if log_level not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log_level '{log_level}'. Must be one of {sorted(VALID_LOG_LEVELS)}"
        )

    monitor = LogMonitorSettings(
        enabled=_bool(monitor_raw, "enabled", False),
        log_folder_path=_str(monitor_raw, "log_folder_path", ""),
    )
    if monitor.enabled:
        if not monitor.log_folder_path:
            errors.append("log_monitor.log_folder_path is missing or empty")
        elif check_paths and not Path(monitor.log_folder_path).is_dir():
            errors.append(
                f"log_monitor.log_folder_path does not exist: {monitor.log_folder_path}"
            )

    text_defaults = TextSettings()
    text = TextSettings(
        **{
            name: _str(text_raw, name, getattr(text_defaults, name))
            for name in text_defaults.__dataclass_fields__
        }
    )
    summary_error = _summary_error(text.summary)
    if summary_error:
        errors.append(f"text.summary is not a valid template: {summary_error}")

    icon_defaults = IconSettings()
    icons = IconSettings(
        **{
            name: _str(icons_raw, name, getattr(icon_defaults, name))
            for name in icon_defaults.__dataclass_fields__
        }
    )

    config = Config(
        enabled=_bool(data, "enabled", True),
        log_level=log_level,
        config_dir=config_dir,
        discord=discord_settings,
        fika=fika_settings,
        interval_seconds=_int(
            update_raw, "interval_seconds", 30, "update.interval_seconds", errors
        ),
        log_monitor=monitor,
        text=text,
        embed_color=_int(
            colors_raw,
            "embed_color_decimal",
            3447003,
            "colors.embed_color_decimal",
            errors,
        ),
        icons=icons,
        map_emoji=_table(data, "map_emoji", errors),
        location_names=_table(data, "location_names", errors),
        activity_names=_table(data, "activity_names", errors),
        side_names=_table(data, "side_names", errors),
        boss_names=_table(data, "boss_names", errors),
        map_names_log=_table(data, "map_names_log", errors),
    )
    if errors:
        raise ConfigError(errors)
    return config


def load_config(path: str | None = None, check_paths: bool = True) -> Config:
    config_path = config_path_from_env(path)
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigError([f"Cannot read config file {config_path}: {exc}"]) from exc
    except yaml.YAMLError as exc:
        raise ConfigError([f"Config file {config_path} is not valid YAML: {exc}"]) from exc
    except UnicodeDecodeError as exc:
        raise ConfigError([f"Config file {config_path} is not valid UTF-8: {exc}"]) from exc
    config_dir = str(Path(config_path).resolve().parent)
    return parse_config(data, config_dir=config_dir, check_paths=check_paths)

from dataclasses import fields
from pathlib import Path

import pytest

from fika_presence.config import ConfigError, load_config, parse_config
from tests.fakes import config_data, make_config, write_config


def test_load_config_reads_yaml_and_resolves_state_path(tmp_path):
    path = write_config(
        tmp_path,
        discord={"state_file": "state/bot_state.json", "status_message_id": "42"},
        location_names={0: "Menu", 1: "Hideout"},
    )

    config = load_config(str(path))

    assert config.discord.status_message_id == 42
    assert config.state_path == tmp_path.resolve() / "state" / "bot_state.json"
    assert config.location_names == {"0": "Menu", "1": "Hideout"}
    assert config.fika.base_url == "https://127.0.0.1:6969"
    assert config.interval_seconds == 30


def test_load_config_uses_env_path(tmp_path, monkeypatch):
    path = write_config(tmp_path, text={"title": "From env"})
    monkeypatch.setenv("CONFIG_PATH", str(path))

    assert load_config().text.title == "From env"


def test_defaults_match_a_fresh_install():
    config = make_config()

    assert config.discord.username == "Fika Status"
    assert config.discord.state_file == "bot_state.json"
    assert config.fika.ignore_ssl_errors is True
    assert config.fika.timeout_seconds == 10
    assert config.embed_color == 3447003
    assert config.icons.default_map == "🗺️"
    assert [f.name for f in fields(config.icons)] == ["default_map"]
    assert config.log_monitor.enabled is False


def test_all_problems_are_reported_together(tmp_path):
    data = config_data(
        discord={"webhook_url": ""},
        fika={"api_key": ""},
        log_level="loud",
        update={"interval_seconds": "soon"},
        log_monitor={"enabled": True, "log_folder_path": str(tmp_path / "missing")},
    )

    with pytest.raises(ConfigError) as excinfo:
        parse_config(data)

    errors = excinfo.value.errors
    assert len(errors) == 5
    assert any("discord.webhook_url is missing" in e for e in errors)
    assert any("fika.api_key is missing" in e for e in errors)
    assert any("log_level" in e for e in errors)
    assert any("update.interval_seconds" in e for e in errors)
    assert any("log_monitor.log_folder_path does not exist" in e for e in errors)
    assert "  - fika.api_key is missing or empty" in str(excinfo.value)


def test_log_folder_required_only_when_monitoring_enabled(tmp_path):
    make_config(log_monitor={"enabled": False, "log_folder_path": ""})
    with pytest.raises(ConfigError) as excinfo:
        make_config(log_monitor={"enabled": True, "log_folder_path": ""})
    assert excinfo.value.errors == ["log_monitor.log_folder_path is missing or empty"]

    config = make_config(log_monitor={"enabled": True, "log_folder_path": str(tmp_path)})
    assert config.log_monitor.enabled is True


def test_rejects_non_discord_webhook_url():
    with pytest.raises(ConfigError) as excinfo:
        make_config(discord={"webhook_url": "https://example.com/hook"})
    assert "not a Discord webhook URL" in excinfo.value.errors[0]


def test_rejects_broken_summary_template():
    with pytest.raises(ConfigError) as excinfo:
        make_config(text={"summary": "{players} online"})
    assert "text.summary" in excinfo.value.errors[0]


def test_unreadable_file_is_a_config_error(tmp_path):
    missing = tmp_path / "nope.yml"
    with pytest.raises(ConfigError):
        load_config(str(missing))

    broken = tmp_path / "broken.yml"
    broken.write_text("discord: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(broken))


def test_json_config_files_are_accepted(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        '{"discord": {"webhook_url": "%s"}, "fika": {"api_key": "k"}}'
        % config_data()["discord"]["webhook_url"],
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.fika.api_key == "k"
    assert Path(config.config_dir) == tmp_path.resolve()


def test_summary_only_accepts_the_count_fields():
    for template in ("{online.real} online", "{in_raid[0]}", "{} online", "{online"):
        with pytest.raises(ConfigError) as excinfo:
            make_config(text={"summary": template})
        assert "text.summary" in excinfo.value.errors[0]

    config = make_config(text={"summary": "{online:>3} / {in_raid!s} / {other}"})
    assert config.text.summary.startswith("{online:>3}")


def test_half_written_utf8_file_is_a_config_error(tmp_path):
    path = write_config(tmp_path)
    with path.open("ab") as fh:
        fh.write('extra: "🌵'.encode("utf-8")[:-2])

    with pytest.raises(ConfigError) as excinfo:
        load_config(str(path))
    assert "not valid UTF-8" in excinfo.value.errors[0]


def test_log_folder_existence_can_be_skipped(tmp_path):
    monitor = {"enabled": True, "log_folder_path": str(tmp_path / "gone")}
    with pytest.raises(ConfigError):
        parse_config(config_data(log_monitor=monitor))

    config = parse_config(config_data(log_monitor=monitor), check_paths=False)
    assert config.log_monitor.log_folder_path == str(tmp_path / "gone")

    with pytest.raises(ConfigError):
        parse_config(
            config_data(log_monitor={"enabled": True, "log_folder_path": ""}),
            check_paths=False,
        )

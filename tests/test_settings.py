import pytest
import yaml

from heater_backend.core.settings import Settings, load_seed_value_descriptors, load_settings


def test_shipped_settings_match_defaults():
    assert load_settings(env={}) == Settings()


def test_yaml_then_env_overrides(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        yaml.safe_dump({"database_url": "sqlite:///x.db", "smtp_port": 25, "nieznany": 1}),
        encoding="utf-8",
    )

    s = load_settings(
        path,
        env={
            "HEATER_BACKEND_SMTP_PORT": "2525",
            "HEATER_BACKEND_SMTP_USE_TLS": "off",
            "HEATER_BACKEND_CATALOG_READY_TIMEOUT_S": "5",
        },
    )

    assert s.database_url == "sqlite:///x.db"
    assert s.smtp_port == 2525
    assert s.smtp_use_tls is False
    assert s.catalog_ready_timeout_s == 5.0


def test_missing_file_uses_defaults(tmp_path):
    assert load_settings(tmp_path / "brak.yaml", env={}) == Settings()


def test_invalid_env_value(tmp_path):
    with pytest.raises(ValueError):
        load_settings(tmp_path / "brak.yaml", env={"HEATER_BACKEND_SMTP_PORT": "abc"})


def test_seed_descriptors():
    seeds = {d.id: d for d in load_seed_value_descriptors()}
    assert {1, 99, 200} <= set(seeds)
    assert seeds[200].is_logged is False

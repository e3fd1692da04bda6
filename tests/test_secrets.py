from __future__ import annotations

from src.core.secrets import _slugify, resolve_secret


def test_resolve_secret_prefers_settings_value(monkeypatch):
    monkeypatch.setenv("RELAY_SECRET_TELEGRAM_BOT_TOKEN", "env-value")
    assert resolve_secret("telegram_bot_token", "settings-value") == "settings-value"


def test_resolve_secret_from_env(monkeypatch):
    monkeypatch.setenv("RELAY_SECRET_WIX_REFRESH_TOKEN", "env-value")
    assert resolve_secret("wix_refresh_token") == "env-value"


def test_resolve_secret_from_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RELAY_SECRET_WIX_API_KEY", raising=False)
    secret_path = tmp_path / "secrets" / "wix_api_key"
    secret_path.parent.mkdir(parents=True, exist_ok=True)
    secret_path.write_text("file-value\n", encoding="utf-8")

    assert resolve_secret("wix_api_key") == "file-value"


def test_resolve_secret_not_found_returns_none(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert resolve_secret("missing") is None


def test_slugify_converts_to_env_safe_format():
    assert _slugify("wix-refresh-token") == "WIX_REFRESH_TOKEN"

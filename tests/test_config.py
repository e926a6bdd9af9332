"""Tests for startup configuration and secret references."""

from __future__ import annotations

from pathlib import Path

import pytest

from yamo.config import DEFAULT_CONTENT_DIR, DEFAULT_TIMEOUT_S, ENV_VARS, load_settings
from yamo.errors import ConfigError
from yamo.secrets import CompositeSecretsProvider, EnvSecretsProvider, resolve_secret

from .conftest import CONTRACT

BASE_ENV = {
    "YAMO_LEDGER_ENDPOINT": "http://ledger.local:8545",
    "YAMO_LEDGER_ADDRESS": CONTRACT,
    "YAMO_SIGNING_KEY": "raw-signing-key",
}


def test_required_values_from_environment():
    settings = load_settings(environ=BASE_ENV)
    assert settings.ledger_endpoint == "http://ledger.local:8545"
    assert settings.ledger_address == CONTRACT
    assert settings.signing_key == "raw-signing-key"
    assert settings.content_dir == DEFAULT_CONTENT_DIR
    assert settings.allowed_root == Path.cwd()
    assert settings.timeout_s == DEFAULT_TIMEOUT_S


def test_missing_values_are_reported_together():
    with pytest.raises(ConfigError) as exc:
        load_settings(environ={})
    problems = exc.value.problems
    assert len(problems) == 3
    assert any("ledger_endpoint" in p and "RPC_URL" in p for p in problems)
    assert any("ledger_address" in p for p in problems)
    assert any("signing_key" in p and "PRIVATE_KEY" in p for p in problems)


def test_legacy_environment_names_are_accepted():
    settings = load_settings(
        environ={"RPC_URL": "https://rpc.example", "CONTRACT_ADDRESS": CONTRACT, "PRIVATE_KEY": "pk"}
    )
    assert settings.ledger_endpoint == "https://rpc.example"
    assert settings.signing_key == "pk"


def test_yamo_names_take_priority_over_legacy_names():
    env = {**BASE_ENV, "RPC_URL": "https://other.example"}
    assert load_settings(environ=env).ledger_endpoint == "http://ledger.local:8545"


def test_malformed_address_is_fatal():
    with pytest.raises(ConfigError) as exc:
        load_settings(environ={**BASE_ENV, "YAMO_LEDGER_ADDRESS": "0x1234"})
    assert any("ledger_address" in p for p in exc.value.problems)


def test_bad_timeout_is_fatal():
    with pytest.raises(ConfigError) as exc:
        load_settings(environ={**BASE_ENV, "YAMO_TIMEOUT": "soon"})
    assert any("timeout_s" in p for p in exc.value.problems)

    with pytest.raises(ConfigError):
        load_settings(environ={**BASE_ENV, "YAMO_TIMEOUT": "0"})


def test_precedence_toml_then_env_then_overrides(tmp_path: Path):
    config = tmp_path / "yamo.toml"
    config.write_text(
        "[yamo]\n"
        'ledger_endpoint = "file:///from-toml.jsonl"\n'
        'content_dir = "toml-content"\n'
        "timeout_s = 5\n"
        'unrelated = "ignored"\n',
        encoding="utf-8",
    )
    env = {"YAMO_LEDGER_ADDRESS": CONTRACT, "YAMO_SIGNING_KEY": "k", "YAMO_CONTENT_DIR": "env-content"}

    settings = load_settings(config, {"allowed_root": tmp_path, "ledger_address": None}, environ=env)

    assert settings.ledger_endpoint == "file:///from-toml.jsonl"
    assert settings.content_dir == Path("env-content")
    assert settings.allowed_root == tmp_path
    assert settings.ledger_address == CONTRACT
    assert settings.timeout_s == 5.0


def test_invalid_toml_is_config_error(tmp_path: Path):
    config = tmp_path / "yamo.toml"
    config.write_text("[yamo\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid TOML"):
        load_settings(config, environ=BASE_ENV)


def test_signing_key_reference_is_resolved():
    env = {**BASE_ENV, "YAMO_SIGNING_KEY": "env:AGENT_KEY", "AGENT_KEY": "resolved-secret"}
    assert load_settings(environ=env).signing_key == "resolved-secret"


def test_unresolvable_signing_key_reference_is_fatal():
    env = {**BASE_ENV, "YAMO_SIGNING_KEY": "env:NOT_SET"}
    with pytest.raises(ConfigError) as exc:
        load_settings(environ=env)
    assert exc.value.problems == ["signing_key reference could not be resolved: env:NOT_SET"]


def test_repr_hides_signing_key():
    settings = load_settings(environ=BASE_ENV)
    assert "raw-signing-key" not in repr(settings)


def test_dotenv_file_fills_missing_environment(tmp_path: Path, monkeypatch):
    for names in ENV_VARS.values():
        for name in names:
            # setenv first so monkeypatch restores the variable's absence afterwards.
            monkeypatch.setenv(name, "placeholder")
            monkeypatch.delenv(name)
    monkeypatch.setenv("YAMO_LEDGER_ADDRESS", CONTRACT)

    dotenv = tmp_path / ".env"
    dotenv.write_text(
        "YAMO_LEDGER_ENDPOINT=./blocks.jsonl\n"
        "YAMO_SIGNING_KEY=from-dotenv\n"
        "YAMO_LEDGER_ADDRESS=0x" + "00" * 20 + "\n",
        encoding="utf-8",
    )

    settings = load_settings(dotenv_path=dotenv)

    assert settings.ledger_endpoint == "./blocks.jsonl"
    assert settings.signing_key == "from-dotenv"
    # the real environment is never overridden by .env
    assert settings.ledger_address == CONTRACT


def test_env_secrets_provider():
    provider = EnvSecretsProvider({"TOKEN": "abc", "EMPTY": ""})
    assert provider.supports("env:TOKEN")
    assert not provider.supports("TOKEN")
    assert provider.get("env:TOKEN") == "abc"
    assert provider.get("env:EMPTY") is None
    assert provider.get("TOKEN") is None


def test_resolve_secret_passes_literals_through():
    provider = CompositeSecretsProvider([EnvSecretsProvider({"A": "1"})])
    assert resolve_secret("env:A", provider) == "1"
    assert resolve_secret("env:B", provider) is None
    assert resolve_secret("literal-value", provider) == "literal-value"

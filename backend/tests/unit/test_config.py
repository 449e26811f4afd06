"""
Unit Tests: Configuration

Test cases:
- Secret key parsing from JSON array and comma-separated forms
- Rejection of wrong length, out-of-range bytes and garbage
- Nested env overrides and async driver upgrade
- YAML overlay
"""

import json

import pytest

from whisp.config import Settings, parse_secret_key
from whisp.exceptions import ClaimFailureReason, ConfigurationError

KEY = list(range(64))


def test_parse_secret_key_json_array() -> None:
    assert parse_secret_key(json.dumps(KEY)) == bytes(KEY)


def test_parse_secret_key_comma_separated() -> None:
    assert parse_secret_key(" " + ", ".join(str(n) for n in KEY) + " ") == bytes(KEY)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "[1, 2, 3]",
        json.dumps(KEY[:-1] + [256]),
        json.dumps(KEY[:-1] + [-1]),
        "not,a,key",
        "[broken",
        '{"a": 1}',
    ],
)
def test_parse_secret_key_rejects_invalid(value: str) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        parse_secret_key(value, name="VAULT_SECRET_KEY")
    assert exc_info.value.reason is ClaimFailureReason.MISCONFIGURED
    assert exc_info.value.status_code == 500


def test_nested_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CLAIMS__PROTOCOL_FEE", "0.05")
    monkeypatch.setenv("SWEEP__GRACE_PERIOD_HOURS", "24")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/whisp")

    settings = Settings(_env_file=None)

    assert settings.claims.protocol_fee == 0.05
    assert settings.sweep.grace_period_hours == 24
    assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/whisp"


def test_yaml_overlay(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text(
        "fees:\n  max_retries: 7\nrate_limits:\n  claim:\n    max_requests: 3\n"
    )
    settings = Settings(_env_file=None, data_dir=tmp_path)
    settings.load_yaml_config()

    assert settings.fees.max_retries == 7
    assert settings.fees.batch_size == 10
    assert settings.rate_limits.claim.max_requests == 3


def test_cors_origins_split() -> None:
    settings = Settings(_env_file=None, allowed_origins="http://a.test, http://b.test,")
    assert settings.cors_origins == ["http://a.test", "http://b.test"]

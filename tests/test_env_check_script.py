"""Tests for the environment drift detection script."""

from __future__ import annotations

from pathlib import Path

import pytest

from scripts import check_env

REQUIRED_ENV_KEYS = [
    "EBAY_CLIENT_ID",
    "EBAY_CLIENT_SECRET",
    "EBAY_DEV_ID",
    "EBAY_RU_NAME",
    "EBAY_ENVIRONMENT",
]

_COMPLETE_ENV = {
    "EBAY_CLIENT_ID": "abc",
    "EBAY_CLIENT_SECRET": "secret",
    "EBAY_DEV_ID": "dev",
    "EBAY_RU_NAME": "Seller-RuName",
    "EBAY_ENVIRONMENT": "production",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_required_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in REQUIRED_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


@pytest.mark.usefixtures("restore_environ")
def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_required_env(monkeypatch)
    _write_env(env_file, **_COMPLETE_ENV)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    assert hash_file.read_text(encoding="utf-8").strip()
    assert "eBay environment: production" in capsys.readouterr().out

    _clear_required_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(env_file, **dict(_COMPLETE_ENV, EBAY_CLIENT_SECRET="rotated"))

    _clear_required_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


@pytest.mark.usefixtures("restore_environ")
def test_validation_failure_names_missing_ebay_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_required_env(monkeypatch)
    incomplete = dict(_COMPLETE_ENV)
    incomplete.pop("EBAY_DEV_ID")
    _write_env(env_file, **incomplete)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert "EBAY_DEV_ID" in capsys.readouterr().err
    assert not hash_file.exists()


@pytest.mark.usefixtures("restore_environ")
def test_check_warns_when_tokens_fall_back_to_client_secret(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"

    _clear_required_env(monkeypatch)
    monkeypatch.delenv("TOKEN_ENCRYPTION_SECRET", raising=False)
    monkeypatch.setenv("TOKEN_DB_PATH", str(tmp_path / "data" / "tokens.db"))
    _write_env(env_file, **dict(_COMPLETE_ENV, EBAY_ENVIRONMENT="sandbox"))

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK
    captured = capsys.readouterr()
    assert "api:    https://api.sandbox.ebay.com" in captured.out
    assert "TOKEN_ENCRYPTION_SECRET is not set" in captured.err
    assert "not writable" not in captured.err

"""CLI tests: argument wiring and state persistence, with AWS faked out."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import cli
from infra.config import Settings
from services.provisioning.state_store import JsonStateStore
from tests.aws_mocks import FakeAws


@pytest.fixture
def aws(monkeypatch: pytest.MonkeyPatch) -> FakeAws:
    fake = FakeAws()
    monkeypatch.setattr(cli, "get_settings", lambda: Settings())
    monkeypatch.setattr(cli, "make_clients_for_region", lambda settings: fake.clients_for_region)
    return fake


@pytest.fixture
def inputs_file(tmp_path: Path) -> Path:
    archive = tmp_path / "code.zip"
    archive.write_bytes(b"PK\x03\x04 handler")
    path = tmp_path / "inputs.json"
    path.write_text(json.dumps({"name": "fn1", "src": str(archive)}), encoding="utf-8")
    return path


def _identity(state_dir: Path) -> list[str]:
    return ["--app", "api", "--stage", "dev", "--state-dir", str(state_dir)]


def test_deploy_info_remove_round_trip(
    aws: FakeAws, inputs_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    state_dir = tmp_path / "state"
    store = JsonStateStore(state_dir)

    cli.main(["deploy", *_identity(state_dir), "--inputs", str(inputs_file)])
    outputs = json.loads(capsys.readouterr().out)

    assert outputs["name"] == "fn1"
    assert outputs["version"] == "1"
    saved = store.load("api", "dev")
    assert saved.name == "fn1"
    assert saved.role_arn == aws.lambda_client.functions["fn1"]["Role"]

    cli.main(["info", *_identity(state_dir)])
    info = json.loads(capsys.readouterr().out)

    assert info["state"]["name"] == "fn1"
    assert info["function"]["memory"] == 1028

    cli.main(["remove", *_identity(state_dir)])
    assert json.loads(capsys.readouterr().out) == {"removed": True}
    assert not store.path_for("api", "dev").exists()
    assert aws.lambda_client.functions == {}


def test_failed_deploy_exits_non_zero_and_keeps_partial_state(
    aws: FakeAws, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    state_dir = tmp_path / "state"
    inputs = tmp_path / "inputs.json"
    inputs.write_text(json.dumps({"name": "fn1"}), encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["deploy", *_identity(state_dir), "--inputs", str(inputs)])

    assert excinfo.value.code == 1
    assert "src" in capsys.readouterr().err
    saved = JsonStateStore(state_dir).load("api", "dev")
    assert saved.role_arn is not None
    assert saved.name is None


def test_missing_inputs_file_is_reported(aws: FakeAws, tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match="inputs file not found"):
        cli.main(["deploy", *_identity(tmp_path), "--inputs", str(tmp_path / "missing.json")])


def test_metrics_rejects_bad_timestamp(aws: FakeAws, tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match="Invalid ISO-8601"):
        cli.main(["metrics", *_identity(tmp_path), "--start", "yesterday"])


def test_metrics_without_deployment_exits_non_zero(aws: FakeAws, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["metrics", *_identity(tmp_path)])
    assert excinfo.value.code == 1


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert "lambdaprov" in capsys.readouterr().out

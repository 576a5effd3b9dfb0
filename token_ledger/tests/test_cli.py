import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from token_ledger.cli import app

runner = CliRunner()


def run_cli(args: list, state_file: Path, expect: int = 0):
    result = runner.invoke(app, ["--state", str(state_file)] + args)
    assert result.exit_code == expect, result.output
    return result


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    path = tmp_path / "state.json"
    run_cli(["deploy"], path)
    return path


def test_deploy_writes_state(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    result = run_cli(["deploy", "--registry", str(tmp_path / "deployments")], path)
    record = json.loads(result.stdout)
    state = json.loads(path.read_text())
    assert record["proxy"] == state["proxy"]["address"]
    assert record["network"] == "hardhat"
    assert (tmp_path / "deployments" / "31337.json").is_file()

    again = run_cli(["deploy"], path, expect=1)
    assert "exists" in again.output


def test_info(state_file: Path) -> None:
    info = json.loads(run_cli(["info"], state_file).stdout)
    assert info["name"] == "TestERC20"
    assert info["symbol"] == "TE20"
    assert info["decimals"] == 18
    assert info["totalSupply"] == "0"
    assert info["roles"]["MINTER"] == info["roles"]["ADMIN"]


def test_mint_transfer_and_balance(state_file: Path) -> None:
    run_cli(["mint", "1", "100", "--from", "0"], state_file)
    assert run_cli(["balance", "1"], state_file).stdout.strip() == "100"

    failed = run_cli(["transfer", "2", "150", "--from", "1"], state_file, expect=1)
    assert "insufficient_balance" in failed.output
    assert run_cli(["balance", "1"], state_file).stdout.strip() == "100"

    run_cli(["transfer", "2", "40", "--from", "1"], state_file)
    assert run_cli(["balance", "2"], state_file).stdout.strip() == "40"


def test_allowance_flow(state_file: Path) -> None:
    run_cli(["mint", "1", "200"], state_file)
    run_cli(["approve", "3", "200", "--from", "1"], state_file)
    run_cli(["transfer-from", "1", "2", "150", "--from", "3"], state_file)
    assert run_cli(["allowance", "1", "3"], state_file).stdout.strip() == "50"
    assert run_cli(["balance", "2"], state_file).stdout.strip() == "150"

    run_cli(["burn-from", "1", "50", "--from", "3"], state_file)
    assert run_cli(["balance", "1"], state_file).stdout.strip() == "0"


def test_burns_and_roles(state_file: Path) -> None:
    run_cli(["mint", "1", "100"], state_file)
    run_cli(["burn", "10", "--from", "1"], state_file)
    run_cli(["burn", "20", "--account", "1"], state_file)
    assert run_cli(["balance", "1"], state_file).stdout.strip() == "70"

    denied = run_cli(["burn", "1", "--account", "1", "--from", "2"], state_file, expect=1)
    assert "unauthorized" in denied.output

    assert run_cli(["has-role", "BURNER", "2"], state_file).stdout.strip() == "False"
    run_cli(["grant-role", "BURNER", "2"], state_file)
    assert run_cli(["has-role", "BURNER", "2"], state_file).stdout.strip() == "True"
    run_cli(["burn", "1", "--account", "1", "--from", "2"], state_file)
    run_cli(["revoke-role", "BURNER", "2"], state_file)
    assert run_cli(["has-role", "BURNER", "2"], state_file).stdout.strip() == "False"


def test_events(state_file: Path) -> None:
    run_cli(["mint", "1", "5"], state_file)
    events = json.loads(run_cli(["events", "--name", "Transfer"], state_file).stdout)
    assert len(events) == 1
    assert events[0]["args"]["value"] == 5
    assert events[0]["args"]["sender"] == "0x" + "00" * 20


def test_missing_state(tmp_path: Path) -> None:
    result = run_cli(["balance", "0"], tmp_path / "nothing.json", expect=1)
    assert "deploy" in result.output


@pytest.mark.parametrize(
    "content",
    ["{not json", "{}", "[]", '{"implementation": {"address": "0x00", "name": "Nope"}}'],
)
def test_corrupt_state(tmp_path: Path, content: str) -> None:
    path = tmp_path / "state.json"
    path.write_text(content, encoding="utf-8")
    result = run_cli(["balance", "0"], path, expect=1)
    assert '"reason": "invalid_config"' in result.output
    assert str(path) in result.output


def test_truncated_state_reports_config_error(state_file: Path) -> None:
    data = json.loads(state_file.read_text())
    del data["proxy"]
    state_file.write_text(json.dumps(data), encoding="utf-8")
    result = run_cli(["info"], state_file, expect=1)
    assert '"reason": "invalid_config"' in result.output
    assert "KeyError" in result.output

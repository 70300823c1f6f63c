from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from gated_counter.cli import app
from gated_counter.identity import to_hex
from gated_counter.state_file import load_state

runner = CliRunner()


@pytest.fixture
def cli(state_path):
    def _run(*args: str, json_output: bool = False):
        base = ["--state", str(state_path)]
        if json_output:
            base.append("--json")
        return runner.invoke(app, [*base, *args])

    return _run


@pytest.fixture
def deployed(cli, owner):
    r = cli("deploy", "--owner", to_hex(owner))
    assert r.exit_code == 0, r.output
    return r


def test_deploy_creates_state(deployed, state_path, owner):
    rec = load_state(state_path)
    assert rec is not None
    assert rec.owner == owner
    assert rec.counter == 0


def test_deploy_refuses_to_overwrite(cli, deployed, owner):
    r = cli("deploy", "--owner", to_hex(owner))
    assert r.exit_code == 2
    r = cli("deploy", "--owner", to_hex(owner), "--force")
    assert r.exit_code == 0


def test_commands_need_a_record(cli, owner):
    r = cli("inc", "--caller", to_hex(owner))
    assert r.exit_code == 2


def test_full_flow(cli, deployed, owner, accounts, state_path):
    bob = to_hex(accounts["bob"])
    alice = to_hex(owner)

    r = cli("grant", bob, "--caller", alice, json_output=True)
    assert r.exit_code == 0, r.output
    assert json.loads(r.stdout) == {"index": 0, "name": "OperatorAdded", "args": {"operator": bob}}

    assert cli("inc", "--caller", bob).exit_code == 0
    assert cli("inc", "--caller", bob).exit_code == 0
    r = cli("dec", "--caller", alice)
    assert r.exit_code == 0
    assert "newValue=1" in r.stdout

    r = cli("show", json_output=True)
    body = json.loads(r.stdout)
    assert body["owner"] == alice
    assert body["counter"] == 1
    assert set(body["operators"]) == {alice, bob}

    r = cli("is-operator", bob)
    assert r.stdout.strip() == "yes"

    assert cli("revoke", bob, "--caller", alice).exit_code == 0
    r = cli("is-operator", bob, json_output=True)
    assert json.loads(r.stdout)["isOperator"] is False

    r = cli("events", "--since", "3", json_output=True)
    evs = json.loads(r.stdout)["events"]
    assert [e["index"] for e in evs] == [3, 4]
    assert [e["name"] for e in evs] == ["CounterUpdated", "OperatorRemoved"]


def test_rejected_calls_exit_1_and_leave_state(cli, deployed, accounts, state_path):
    before = state_path.read_text(encoding="utf-8")

    r = cli("inc", "--caller", to_hex(accounts["bob"]))
    assert r.exit_code == 1
    assert "forbidden" in r.output

    r = cli("grant", to_hex(accounts["bob"]), "--caller", to_hex(accounts["bob"]))
    assert r.exit_code == 1
    assert "unauthorized" in r.output

    assert state_path.read_text(encoding="utf-8") == before


def test_underflow_message(cli, deployed, owner):
    r = cli("dec", "--caller", to_hex(owner))
    assert r.exit_code == 1
    assert "underflow: Counter is zero" in r.output


def test_bad_identity(cli, deployed):
    r = cli("inc", "--caller", "0xabc")
    assert r.exit_code == 1
    assert "invalid_identity" in r.output


def test_corrupt_state_file(cli, state_path, owner):
    state_path.parent.mkdir(parents=True, exist_ok=True)
    state_path.write_text("{oops", encoding="utf-8")
    r = cli("show")
    assert r.exit_code == 2

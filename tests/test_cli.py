"""
VSTS CLI tests.

In-process tests run ``main`` against a fake transport. The smoke tests at
the bottom exercise the CLI against the REAL service and are skipped unless
VSTS_ACCOUNT, VSTS_USER and VSTS_TOKEN are set (a .env file works too).

Run with: python -m pytest tests/test_cli.py -v -s
"""

import json
import os
import subprocess
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path

import pytest

from vsts_cli.cli import create_parser, main, session_from_args
from vsts_cli.core.poller import DEFAULT_INTERVAL, DEFAULT_MAX_ATTEMPTS

CREDENTIALS = ["--account", "myaccount", "--user", "alice", "--token", "secret"]


def run_main(capsys, *args: str) -> tuple[int, str]:
    """Run the CLI in-process and return (exit code, stdout)."""
    try:
        main([*CREDENTIALS, *args])
        code = 0
    except SystemExit as e:
        code = e.code or 0
    return code, capsys.readouterr().out


# =============================================================================
# Configuration
# =============================================================================


class TestSessionFromArgs:
    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("VSTS_USER", "env-user")
        monkeypatch.setenv("VSTS_TOKEN", "env-token")
        monkeypatch.setenv("VSTS_ACCOUNT", "env-account")

        args = create_parser().parse_args(["--user", "flag-user", "--scheme", "http", "projects", "list"])
        session = session_from_args(args)

        assert session.user == "flag-user"
        assert session.token == "env-token"
        assert session.account_name == "env-account"
        assert session.scheme.value == "http"

    def test_missing_credentials(self, monkeypatch, capsys):
        monkeypatch.delenv("VSTS_USER", raising=False)
        monkeypatch.delenv("VSTS_TOKEN", raising=False)
        monkeypatch.setattr("vsts_cli.cli.load_dotenv", lambda *a, **kw: False)

        with pytest.raises(SystemExit) as exc_info:
            main(["projects", "list"])

        assert exc_info.value.code == 1
        assert "VSTS_USER" in json.loads(capsys.readouterr().out)["error"]


# =============================================================================
# Commands
# =============================================================================


class TestCommands:
    def test_group_without_subcommand_prints_help(self, transport, capsys):
        code, out = run_main(capsys, "projects")
        assert code == 0
        assert "usage:" in out
        assert transport.requests == []

    def test_projects_list_json(self, transport, capsys):
        transport.queue({"count": 1, "value": [{"id": "p-1", "name": "Demo"}]})

        code, out = run_main(capsys, "projects", "list")

        assert code == 0
        data = json.loads(out)
        assert data["count"] == 1
        assert data["value"][0]["name"] == "Demo"
        assert transport.last.full_url.startswith("https://myaccount.visualstudio.com/DefaultCollection/_apis/projects")

    def test_projects_get_missing(self, transport, capsys):
        transport.queue({"count": 0, "value": []})
        code, out = run_main(capsys, "projects", "get", "Nope")
        assert code == 1
        assert "not found" in json.loads(out)["error"]

    def test_projects_delete_missing_sends_no_delete(self, transport, capsys):
        transport.queue({"count": 0, "value": []})
        code, _out = run_main(capsys, "projects", "delete", "Nope")
        assert code == 1
        assert [r.get_method() for r in transport.requests] == ["GET"]

    def test_http_error_output(self, transport, capsys):
        transport.queue_http_error(401, raw=b"")
        code, out = run_main(capsys, "repos", "list")
        assert code == 1
        assert json.loads(out)["status"] == 401

    def test_projects_wait(self, transport, capsys, sleeps):
        transport.queue({"count": 0, "value": []})
        transport.queue({"count": 0, "value": []})

        code, out = run_main(capsys, "projects", "wait", "Demo", "--attempts", "1", "--interval", "0")

        assert code == 1
        assert json.loads(out)["details"] == {"attempts": 2}
        assert len(transport.requests) == 2

    def test_projects_wait_defaults(self):
        args = create_parser().parse_args(["projects", "wait", "Demo"])
        assert args.attempts == DEFAULT_MAX_ATTEMPTS
        assert args.interval == DEFAULT_INTERVAL

    def test_undecodable_response_output(self, transport, capsys):
        transport.queue(raw=b"\xff\xfe{}")
        code, out = run_main(capsys, "repos", "list")
        assert code == 1
        assert "Invalid JSON response" in json.loads(out)["error"]

    def test_workitems_create_with_title(self, transport, capsys):
        transport.queue({"id": 5, "url": "https://example/5"})

        code, out = run_main(capsys, "workitems", "create", "Demo", "Task", "--title", "Write docs")

        assert code == 0
        assert json.loads(out)["id"] == 5
        assert transport.last_json() == [{"op": "add", "path": "/fields/System.Title", "value": "Write docs"}]

    def test_workitems_create_invalid_fields(self, transport, capsys):
        code, out = run_main(capsys, "workitems", "create", "Demo", "Task", "--fields", "{invalid json}")
        assert code == 1
        assert "Invalid JSON" in json.loads(out)["error"]
        assert transport.requests == []

    def test_workitems_create_without_fields(self, transport, capsys):
        code, out = run_main(capsys, "workitems", "create", "Demo", "Task")
        assert code == 1
        assert "At least one field" in json.loads(out)["error"]
        assert transport.requests == []

    def test_workitems_get(self, transport, capsys):
        transport.queue({"count": 1, "value": [{"id": 3, "fields": {"System.Title": "T"}}]})
        code, out = run_main(capsys, "workitems", "get", "3", "4")
        assert code == 0
        assert "ids=3%2C4" in transport.last.full_url
        assert json.loads(out)["value"][0]["fields"] == {"System.Title": "T"}

    def test_policies_create(self, transport, capsys):
        transport.queue({"id": 9})
        code, out = run_main(capsys, "policies", "create", "Demo", "2", "-b", "master", "-b", "dev", "--blocking")
        assert code == 0
        body = transport.last_json()
        assert body["isBlocking"] is True
        assert [s["refName"] for s in body["settings"]["scope"]] == ["refs/heads/master", "refs/heads/dev"]


# =============================================================================
# Live smoke tests
# =============================================================================

ACCOUNT = os.environ.get("VSTS_ACCOUNT")
USER = os.environ.get("VSTS_USER")
TOKEN = os.environ.get("VSTS_TOKEN")

CLI_TIMEOUT = 300  # project creation can take minutes


@dataclass
class CLIResult:
    """Result of a single CLI invocation."""

    args: list[str]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def json(self):
        return json.loads(self.stdout)


def run_cli(*args: str, timeout: int = CLI_TIMEOUT) -> CLIResult:
    """Run the CLI in a subprocess."""
    cmd = [sys.executable, "-m", "vsts_cli.cli", *args]
    result = subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        env=os.environ.copy(),
        timeout=timeout,
        cwd=Path(__file__).resolve().parent.parent,
    )
    return CLIResult(list(args), result.returncode, result.stdout, result.stderr)


@pytest.fixture(scope="session")
def require_credentials():
    """Skip test if credentials not available."""
    if not ACCOUNT or not USER or not TOKEN:
        pytest.skip("VSTS_ACCOUNT, VSTS_USER and VSTS_TOKEN required")
    return True


@pytest.fixture(scope="session")
def scratch_project(require_credentials):
    """Create a throwaway project for the session and delete it afterwards."""
    name = f"vsts-cli-smoke-{uuid.uuid4().hex[:8]}"
    result = run_cli("projects", "create", name, "--wait")
    assert result.success, f"project create failed: {result.stdout} {result.stderr}"
    yield name
    run_cli("projects", "delete", name, "--wait")


class TestSmoke:
    def test_projects_list(self, require_credentials):
        result = run_cli("projects", "list")
        assert result.success, f"projects list failed: {result.stdout}"
        assert "value" in result.json()

    def test_processes_list(self, require_credentials):
        result = run_cli("processes", "list")
        assert result.success, f"processes list failed: {result.stdout}"
        assert any(p["name"] == "Agile" for p in result.json()["value"])

    def test_bad_token(self, require_credentials):
        result = run_cli("--token", "not-a-token", "projects", "list")
        assert not result.success

    def test_repository_lifecycle(self, scratch_project):
        result = run_cli("repos", "create", scratch_project, "smoke-repo")
        assert result.success, f"repos create failed: {result.stdout}"

        result = run_cli("repos", "delete", scratch_project, "smoke-repo")
        assert result.success, f"repos delete failed: {result.stdout}"

    def test_query_lifecycle(self, scratch_project):
        wiql = "SELECT [System.Id] FROM WorkItems WHERE [System.State] = 'New'"
        result = run_cli("queries", "create", scratch_project, "Smoke", wiql)
        assert result.success, f"queries create failed: {result.stdout}"
        query_id = result.json()["id"]

        result = run_cli("queries", "list", scratch_project, "--folder", "Shared Queries")
        assert result.success
        assert query_id in [q["id"] for q in result.json()["value"]]

        result = run_cli("queries", "delete", scratch_project, query_id)
        assert result.success, f"queries delete failed: {result.stdout}"

    def test_work_item_create_and_get(self, scratch_project):
        result = run_cli("workitems", "create", scratch_project, "Task", "--title", "Smoke task")
        assert result.success, f"workitems create failed: {result.stdout}"
        item_id = str(result.json()["id"])

        result = run_cli("workitems", "get", item_id)
        assert result.success
        assert result.json()["value"][0]["fields"]["System.Title"] == "Smoke task"

    def test_policy_create(self, scratch_project):
        result = run_cli("policies", "create", scratch_project, "1", "--branch", "master")
        assert result.success, f"policies create failed: {result.stdout}"

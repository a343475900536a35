"""Tests for the click command-line interface."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from conftest import GO_FIXED_IMPL, GO_TESTS
from rich.console import Console

from aiterate.cli import main
from aiterate.errors import RunCancelledError, ServiceError
from aiterate.languages import Language
from aiterate.models import RunResult, RunStatus
from aiterate.store import SessionStore


@pytest.fixture
def cli_env(tmp_path: Path) -> dict[str, str]:
    return {
        "AITERATE_HOME": str(tmp_path / "home"),
        "AITERATE_MODEL": "openai:gpt-4o",
        "OPENAI_API_KEY": "sk-test",
        "LOGFIRE_ENABLED": "false",
    }


@pytest.fixture
def controller():
    with patch("aiterate.cli.build_controller") as build:
        mock = MagicMock()
        build.return_value = mock
        yield mock


def _result(tmp_path: Path, status: RunStatus = RunStatus.PASSED) -> RunResult:
    return RunResult(
        session_id="0b7f5a9e-session",
        language=Language.GO,
        status=status,
        iterations=2,
        output_dir=tmp_path / "add-two-integers",
        code=GO_FIXED_IMPL,
        test_code=GO_TESTS,
        last_output="" if status is RunStatus.PASSED else "--- FAIL: TestAdd",
    )


class TestNewCommand:
    def test_arguments(self, cli_env, controller, tmp_path):
        controller.run.return_value = _result(tmp_path)

        result = CliRunner().invoke(main, ["new", "add two integers", "-l", "go"], env=cli_env)

        assert result.exit_code == 0, result.output
        controller.run.assert_called_once_with("add two integers", Language.GO)
        assert "All tests passed after 2 iteration(s)" in result.output
        assert "func Add" in result.output

    def test_no_code_flag(self, cli_env, controller, tmp_path):
        controller.run.return_value = _result(tmp_path)

        result = CliRunner().invoke(
            main, ["new", "add two integers", "-l", "go", "--no-code"], env=cli_env
        )

        assert result.exit_code == 0, result.output
        assert "func Add" not in result.output

    def test_prompts_for_missing_values(self, cli_env, controller, tmp_path):
        controller.run.return_value = _result(tmp_path)

        result = CliRunner().invoke(main, ["new"], input="add two integers\nGo\n", env=cli_env)

        assert result.exit_code == 0, result.output
        controller.run.assert_called_once_with("add two integers", Language.GO)
        assert "Enter a description" in result.output

    def test_exhausted_run_still_exits_zero(self, cli_env, controller, tmp_path):
        controller.run.return_value = _result(tmp_path, RunStatus.EXHAUSTED)

        result = CliRunner().invoke(main, ["new", "add two integers", "-l", "go"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "NOT PASSING" in result.output

    def test_empty_description(self, cli_env, controller):
        result = CliRunner().invoke(main, ["new"], input="\n", env=cli_env)

        assert result.exit_code == 1
        assert "description is required" in result.output
        controller.run.assert_not_called()

    def test_unsupported_language(self, cli_env, controller):
        result = CliRunner().invoke(main, ["new", "add two integers", "-l", "rust"], env=cli_env)

        assert result.exit_code == 1
        assert "rust" in result.output
        controller.run.assert_not_called()

    def test_missing_credential(self, cli_env):
        env = {**cli_env, "OPENAI_API_KEY": ""}

        result = CliRunner().invoke(main, ["new", "add two integers", "-l", "go"], env=env)

        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output

    def test_fatal_error(self, cli_env, controller):
        controller.run.side_effect = ServiceError("quota exceeded")

        result = CliRunner().invoke(main, ["new", "add two integers", "-l", "go"], env=cli_env)

        assert result.exit_code == 1
        assert "ERROR: quota exceeded" in result.output

    def test_cancelled(self, cli_env, controller):
        controller.run.side_effect = RunCancelledError("interrupted")

        result = CliRunner().invoke(main, ["new", "add two integers", "-l", "go"], env=cli_env)

        assert result.exit_code == 130

    def test_options_reach_settings(self, cli_env, tmp_path):
        with patch("aiterate.cli.build_controller") as build:
            build.return_value.run.return_value = _result(tmp_path)
            result = CliRunner().invoke(
                main,
                [
                    "new",
                    "add two integers",
                    "-l",
                    "go",
                    "-o",
                    str(tmp_path / "out"),
                    "--max-iterations",
                    "3",
                    "--model",
                    "openai:gpt-4o-mini",
                ],
                env=cli_env,
            )

        assert result.exit_code == 0, result.output
        settings, output_root, _ = build.call_args.args
        assert settings.max_iterations == 3
        assert settings.model == "openai:gpt-4o-mini"
        assert output_root == tmp_path / "out"


class TestHistoryAndShow:
    def test_empty_history(self, cli_env):
        result = CliRunner().invoke(main, ["history"], env=cli_env)

        assert result.exit_code == 0
        assert "No sessions stored" in result.output

    def test_history_lists_sessions(self, cli_env):
        store = SessionStore(cli_env["AITERATE_HOME"])
        session = store.create_session("add", "go")

        result = CliRunner().invoke(main, ["history"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert session.id[:8] in result.output

    def test_history_status_comes_from_latest_run(self, cli_env):
        store = SessionStore(cli_env["AITERATE_HOME"])
        store.create_session("never ran", "go")
        failing = store.create_session("still failing", "go")
        store.add_iteration(failing.id, GO_TESTS, GO_FIXED_IMPL, "--- FAIL", False)

        with patch("aiterate.cli.console", Console(width=200)):
            result = CliRunner().invoke(main, ["history"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "no runs" in result.output
        assert "not passing" in result.output
        assert "passed" not in result.output

        store.add_iteration(failing.id, GO_TESTS, GO_FIXED_IMPL, "ok", True)
        with patch("aiterate.cli.console", Console(width=200)):
            result = CliRunner().invoke(main, ["history"], env=cli_env)

        assert "passed" in result.output
        assert "not passing" not in result.output

    def test_show_session(self, cli_env):
        store = SessionStore(cli_env["AITERATE_HOME"])
        session = store.create_session("add two integers", "go")
        store.add_iteration(session.id, GO_TESTS, GO_FIXED_IMPL, "ok", True)

        result = CliRunner().invoke(main, ["show", session.id], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "Iteration 1" in result.output
        assert "passed" in result.output

    def test_show_missing_iteration(self, cli_env):
        store = SessionStore(cli_env["AITERATE_HOME"])
        session = store.create_session("add two integers", "go")

        result = CliRunner().invoke(main, ["show", session.id, "-i", "3"], env=cli_env)

        assert result.exit_code == 1
        assert "no iteration 3" in result.output

    def test_show_unknown_session(self, cli_env):
        result = CliRunner().invoke(main, ["show", "does-not-exist"], env=cli_env)

        assert result.exit_code == 1
        assert "Session not found" in result.output

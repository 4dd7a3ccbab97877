"""Tests for the click command-line front-end."""

import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from instantunit.cli import main, run_tests

PASSING = textwrap.dedent(
    '''
    from instantunit import test, test_suite


    @test("standalone")
    def _(t):
        t.expect(True)


    @test_suite("Vec")
    def _(suite):
        v = [10, 20, 31]

        @suite.case("size")
        def _(t):
            t.expect(len(v), "==", 3)
    '''
)

FAILING = textwrap.dedent(
    '''
    from instantunit import test


    @test("wrong")
    def _(t):
        t.expect(1, "==", 2)
    '''
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def passing_file(tmp_path: Path) -> Path:
    path = tmp_path / "test_passing.py"
    path.write_text(PASSING)
    return path


@pytest.fixture
def failing_file(tmp_path: Path) -> Path:
    path = tmp_path / "test_failing.py"
    path.write_text(FAILING)
    return path


class TestRunCommand:
    def test_passing_run_exits_zero(self, runner: CliRunner, passing_file: Path) -> None:
        result = runner.invoke(main, ["run", str(passing_file)])
        assert result.exit_code == 0, result.output
        assert "Running session" in result.output
        assert "All tests passed" in result.output

    def test_failing_run_exits_one(self, runner: CliRunner, failing_file: Path) -> None:
        result = runner.invoke(main, ["run", str(failing_file)])
        assert result.exit_code == 1
        assert "FAIL" in result.output
        assert "Tests failed" in result.output

    def test_pattern_selects_cases(self, runner: CliRunner, passing_file: Path, failing_file: Path) -> None:
        result = runner.invoke(main, ["run", str(passing_file), str(failing_file), "-k", "Vec::*"])
        assert result.exit_code == 0, result.output
        assert "wrong" not in result.output

    def test_session_name(self, runner: CliRunner, passing_file: Path) -> None:
        result = runner.invoke(main, ["run", str(passing_file), "--session-name", "nightly"])
        assert "nightly" in result.output

    def test_quiet_from_environment(self, runner: CliRunner, passing_file: Path) -> None:
        result = runner.invoke(
            main, ["run", str(passing_file)], env={"INSTANTUNIT_RUN_QUIET": "1"}
        )
        assert result.exit_code == 0
        assert "Running session" not in result.output
        assert "All tests passed" in result.output

    def test_missing_path(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["run", str(tmp_path / "missing_dir")])
        assert result.exit_code == 1
        assert "Failed to load tests" in result.output

    def test_paths_required(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["run"])
        assert result.exit_code == 2


class TestListCommand:
    def test_lists_units(self, runner: CliRunner, passing_file: Path) -> None:
        result = runner.invoke(main, ["list", str(passing_file)])
        assert result.exit_code == 0, result.output
        assert "standalone" in result.output
        assert "Vec" in result.output
        assert "suite" in result.output

    def test_empty_directory(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["list", str(tmp_path)])
        assert result.exit_code == 0
        assert "No tests found" in result.output


class TestRunTests:
    def test_returns_zero_when_all_pass(self, passing_file: Path) -> None:
        assert run_tests([str(passing_file)]) == 0

    def test_returns_one_on_failure(self, failing_file: Path) -> None:
        assert run_tests([str(failing_file)]) == 1

    def test_returns_one_on_load_error(self, tmp_path: Path) -> None:
        assert run_tests([str(tmp_path / "missing.py")]) == 1

    def test_usage_error(self) -> None:
        assert run_tests([]) == 2

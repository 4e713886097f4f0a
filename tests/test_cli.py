"""
Tests for the command line surface.
"""

from unittest.mock import patch

from click.testing import CliRunner

from bastion.cli import main
from bastion.errors import KeyFileError


def write_config(tmp_path):
    path = tmp_path / "bastion.yml"
    path.write_text("aws:\n  region: us-east-1\n")
    return path


def test_help_exits_zero():
    result = CliRunner().invoke(main, ["-h"])

    assert result.exit_code == 0
    assert "-m, --memory" in result.output
    assert "-c, --config" in result.output


def test_missing_config_fails_fast(tmp_path):
    result = CliRunner().invoke(main, ["-c", str(tmp_path / "absent.yml")])

    assert result.exit_code == 1
    assert "not found" in result.output


@patch("bastion.cli.run")
def test_trailing_command_is_passed_through(mock_run, tmp_path):
    mock_run.return_value = 0
    config_path = write_config(tmp_path)

    result = CliRunner().invoke(main, ["-m", "4", "-c", str(config_path), "python", "-m", "app", "--reload"])

    assert result.exit_code == 0
    kwargs = mock_run.call_args.kwargs
    assert kwargs["memory_gb"] == 4.0
    assert kwargs["args"] == ["python", "-m", "app", "--reload"]


@patch("bastion.cli.run")
def test_container_exit_code_propagates(mock_run, tmp_path):
    mock_run.return_value = 7

    result = CliRunner().invoke(main, ["-c", str(write_config(tmp_path))])

    assert result.exit_code == 7


@patch("bastion.cli.run")
def test_missing_key_exits_one(mock_run, tmp_path):
    mock_run.side_effect = KeyFileError("SSH key not found at: /nope")

    result = CliRunner().invoke(main, ["-c", str(write_config(tmp_path))])

    assert result.exit_code == 1
    assert "SSH key not found" in result.output


@patch("bastion.cli.run")
def test_missing_binary_exits_one(mock_run, tmp_path):
    mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "docker")

    result = CliRunner().invoke(main, ["-c", str(write_config(tmp_path))])

    assert result.exit_code == 1
    assert "docker" in result.output
    assert not isinstance(result.exception, FileNotFoundError)

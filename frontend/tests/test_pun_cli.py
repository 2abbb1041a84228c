import pytest
from typer.testing import CliRunner

from frontend import cli, service
from packager.compiler import decode_annotations
from packager.graph import Definition

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "pun.yaml"
    path.write_text(f"logfile: {tmp_path / 'log.txt'}\n")
    return path


@pytest.fixture
def containerfile(tmp_path):
    path = tmp_path / "Containerfile"
    path.write_text('FROM scratch\nCOPY a.bin /bin/a.bin\nLABEL k="v"\n')
    return path


def test_help():
    """Test the help command displays usage information."""
    result = runner.invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.output
    assert "--standalone" in result.output
    assert runner.invoke(cli.app, ["-h"]).exit_code == 0


def test_standalone_prints_graph(config_file, containerfile):
    result = runner.invoke(cli.app, ["--standalone", "-f", str(containerfile), "--config", str(config_file)])
    assert result.exit_code == 0, result.output
    definition = Definition.from_json(result.stdout)
    assert [op.op for op in definition.ops] == ["scratch", "copy", "mkfile"]
    assert (definition.ops[1].src, definition.ops[1].dest) == ("a.bin", "/bin/a.bin")
    assert decode_annotations(definition.ops[2].data) == {"k": "v"}


def test_standalone_long_file_option(config_file, containerfile):
    result = runner.invoke(cli.app, ["--standalone", "--file", str(containerfile), "--config", str(config_file)])
    assert result.exit_code == 0, result.output


@pytest.mark.parametrize("args", [[], ["-f", ""], ["-f", "   "]])
def test_standalone_missing_path(config_file, args):
    result = runner.invoke(cli.app, ["--standalone", "--config", str(config_file)] + args)
    assert result.exit_code == 1
    assert "Please specify the Containerfile" in result.output
    assert "--help" in result.output


def test_standalone_unreadable_file(config_file, tmp_path):
    result = runner.invoke(cli.app, ["--standalone", "-f", str(tmp_path / "missing"), "--config", str(config_file)])
    assert result.exit_code == 1
    assert "Failed to read" in result.output


def test_standalone_multi_stage(config_file, tmp_path):
    path = tmp_path / "Containerfile"
    path.write_text("FROM scratch\nFROM unikraft.org/nginx:1.15\n")
    result = runner.invoke(cli.app, ["--standalone", "-f", str(path), "--config", str(config_file)])
    assert result.exit_code == 1
    assert "MultiStageUnsupported" in result.output


def test_invalid_config(tmp_path, containerfile):
    path = tmp_path / "bad.yaml"
    path.write_text("metadata_mode: -5\n")
    result = runner.invoke(cli.app, ["--standalone", "-f", str(containerfile), "--config", str(path)])
    assert result.exit_code == 1
    assert "Failed to load configuration" in result.output


def test_service_mode_is_default(config_file, monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    result = runner.invoke(cli.app, ["--config", str(config_file), "--port", "9999"])
    assert result.exit_code == 0, result.output
    assert calls and calls[0][0] is service.app
    assert calls[0][1]["port"] == 9999
    assert service.app.state.config.logfile.endswith("log.txt")

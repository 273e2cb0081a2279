"""Tests for the run-pipeline command."""

import pytest
from typer.testing import CliRunner

from deployer.src import cli
from deployer.src.errors import ConfigurationError
from deployer.src.models.run import PipelineRun, RunStatus, StageStatus

runner = CliRunner()

PIPELINE = """
name: demo
image: demo:1.0
test:
  commands:
    - pytest
build:
  context: .
deploy:
  host: 3.120.1.1
  key_env: EC2_SSH_KEY
  port: 5000
"""

def finished_run(failed_stage=None):
    run = PipelineRun.for_stages(["test", "build", "deploy"])
    for result in run.stages:
        if failed_stage and run.failed_stage:
            run.mark(result.name, StageStatus.SKIPPED)
            continue
        run.mark(result.name, StageStatus.RUNNING)
        if result.name == failed_stage:
            run.mark(result.name, StageStatus.FAILED, error_kind="BackendFailed", error="exit 1")
            run.failed_stage = result.name
        else:
            run.mark(result.name, StageStatus.SUCCEEDED)
    run.status = RunStatus.FAILED if failed_stage else RunStatus.SUCCEEDED
    return run

@pytest.fixture
def pipeline_file(tmp_path):
    path = tmp_path / "pipeline.yml"
    path.write_text(PIPELINE)
    return path

@pytest.mark.parametrize("failed_stage,code", [
    (None, 0),
    ("test", 10),
    ("build", 11),
    ("deploy", 12),
])
def test_exit_code_per_stage(monkeypatch, pipeline_file, failed_stage, code):
    calls = []

    def fake_execute(config, **kwargs):
        calls.append((config, kwargs))
        return finished_run(failed_stage)

    monkeypatch.setattr(cli, "execute_pipeline", fake_execute)

    result = runner.invoke(cli.app, ["--config", str(pipeline_file)])

    assert result.exit_code == code
    config, kwargs = calls[0]
    assert config["stages"] == ["test", "build", "deploy"]
    assert kwargs["base_dir"] == str(pipeline_file.parent)
    if failed_stage:
        assert f"{failed_stage}: failed [BackendFailed]" in result.output

def test_configuration_error_exit_code(monkeypatch, pipeline_file):
    def fake_execute(config, **kwargs):
        raise ConfigurationError("Credential environment variable 'EC2_SSH_KEY' is not set")

    monkeypatch.setattr(cli, "execute_pipeline", fake_execute)

    result = runner.invoke(cli.app, ["--config", str(pipeline_file)])

    assert result.exit_code == 2

def test_missing_config_file(tmp_path):
    result = runner.invoke(cli.app, ["--config", str(tmp_path / "absent.yml")])
    assert result.exit_code == 2

def test_unknown_stage_falls_back_to_generic_code():
    run = PipelineRun.for_stages(["custom"])
    run.status = RunStatus.FAILED
    run.failed_stage = "custom"
    assert cli.exit_code_for(run) == 1

@pytest.mark.parametrize("field,value", [
    ("key_env", "123"),
    ("container_name", "123"),
    ("ssh_port", "70000"),
])
def test_mistyped_deploy_field_is_a_configuration_error(monkeypatch, tmp_path, field, value):
    path = tmp_path / "pipeline.yml"
    path.write_text(PIPELINE + f"  {field}: {value}\n")

    calls = []
    monkeypatch.setattr(cli, "execute_pipeline", lambda config, **kwargs: calls.append(config))

    result = runner.invoke(cli.app, ["--config", str(path)])

    assert result.exit_code == 2
    assert calls == []

"""Tests for run, target and credential models."""

import pytest
from pydantic import ValidationError

from deployer.src.errors import CredentialReleased, IllegalTransition
from deployer.src.models import (
    Credential,
    ImageReference,
    PipelineRun,
    PortBinding,
    StageStatus,
    credential_scope,
)

def test_image_reference_parse():
    ref = ImageReference.parse("demo:1.0")
    assert ref.repository == "demo"
    assert ref.tag == "1.0"
    assert str(ref) == "demo:1.0"

def test_image_reference_registry_port_is_not_a_tag():
    ref = ImageReference.parse("registry.local:5000/team/app")
    assert ref.repository == "registry.local:5000/team/app"
    assert ref.tag == "latest"

    ref = ImageReference.parse("registry.local:5000/team/app:2")
    assert ref.repository == "registry.local:5000/team/app"
    assert ref.tag == "2"

def test_image_reference_is_immutable():
    ref = ImageReference.parse("demo:1.0")
    with pytest.raises(ValidationError):
        ref.tag = "2.0"
    assert ref == ImageReference(repository="demo", tag="1.0")
    assert len({ref, ImageReference.parse("demo:1.0")}) == 1

def test_image_reference_rejects_empty_repository():
    with pytest.raises(ValueError):
        ImageReference.parse(":1.0")

def test_port_binding_parse():
    assert str(PortBinding.parse(5000)) == "5000:5000"
    assert str(PortBinding.parse("5000")) == "5000:5000"
    binding = PortBinding.parse("8080:5000")
    assert binding.host_port == 8080
    assert binding.container_port == 5000

def test_port_binding_out_of_range():
    with pytest.raises(ValueError):
        PortBinding.parse(70000)
    with pytest.raises(ValueError):
        PortBinding.parse("http")

def test_stage_status_is_monotonic():
    run = PipelineRun.for_stages(["test", "build"])
    run.mark("test", StageStatus.RUNNING)
    run.mark("test", StageStatus.SUCCEEDED)

    with pytest.raises(IllegalTransition):
        run.mark("test", StageStatus.RUNNING)

    with pytest.raises(IllegalTransition):
        run.mark("build", StageStatus.SUCCEEDED)

def test_stage_timestamps_recorded():
    run = PipelineRun.for_stages(["deploy"], run_id="abc")
    assert run.run_id == "abc"
    result = run.mark("deploy", StageStatus.RUNNING)
    assert result.started_at is not None
    result = run.mark("deploy", StageStatus.FAILED, error_kind="DeployError", error="boom")
    assert result.finished_at is not None
    assert result.error_kind == "DeployError"

def test_credential_release_zeroes_secret():
    credential = Credential("env:TOKEN", b"hunter2")
    buffer = credential._secret
    assert credential.reveal() == b"hunter2"

    credential.release()

    assert credential.released
    assert bytes(buffer) == b"\x00" * 7
    with pytest.raises(CredentialReleased):
        credential.reveal()

def test_credential_never_renders_secret():
    credential = Credential("env:TOKEN", b"hunter2")
    assert "hunter2" not in repr(credential)
    assert "hunter2" not in str(credential)
    assert credential.scrub("login with hunter2 failed") == "login with *** failed"

def test_credential_from_env():
    credential = Credential.from_env("TOKEN", {"TOKEN": "s3cret"})
    assert credential.label == "env:TOKEN"
    assert credential.reveal() == b"s3cret"

def test_credential_scope_releases_on_error():
    first = Credential("a", b"1")
    second = Credential("b", b"2")

    with pytest.raises(RuntimeError):
        with credential_scope(first, None, second):
            raise RuntimeError("stage blew up")

    assert first.released
    assert second.released

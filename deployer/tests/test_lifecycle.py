"""Tests for replacing containers on the deploy host."""

import pytest

from deployer.src.errors import DeployError, SessionLost
from deployer.src.models.credential import Credential
from deployer.src.models.target import CommandOutput, ImageReference, PortBinding, RemoteTarget
from deployer.src.services.lifecycle import ContainerLifecycleManager
from deployer.src.services.registry import RegistryClient
from deployer.src.services.remote import RemoteExecutor

IMAGE = ImageReference.parse("demo:1.0")
PORT = PortBinding.parse(5000)

def open_session(host):
    target = RemoteTarget(host="ec2.example.com", credential="env:EC2_KEY")
    return RemoteExecutor(host, ssh="ssh").connect(target, Credential("env:EC2_KEY", b"key"))

def manager():
    return ContainerLifecycleManager(
        registry_factory=lambda session: RegistryClient(session, max_retries=2, sleep=lambda s: None, docker="docker"),
        docker="docker",
    )

def test_zero_containers_goes_straight_to_pull_and_launch(empty_host):
    session = open_session(empty_host)

    report = manager().transition(session, IMAGE, PORT)

    assert empty_host.actions() == ["ps", "pull", "run"]
    assert report.removed == []
    assert empty_host.containers == [report.container_id]
    assert "demo:1.0" in empty_host.images

def test_all_existing_containers_stopped_and_removed_before_launch(host_factory):
    host = host_factory(containers=["a1", "b2", "c3"])
    session = open_session(host)

    report = manager().transition(session, IMAGE, PORT)

    assert host.actions() == ["ps", "stop", "stop", "stop", "rm", "rm", "rm", "pull", "run"]
    assert report.removed == ["a1", "b2", "c3"]
    assert host.containers == [report.container_id]
    assert host.remote_commands[-1] == "docker run -d -p 5000:5000 demo:1.0"

def test_container_name_and_port_mapping(empty_host):
    session = open_session(empty_host)
    lifecycle = ContainerLifecycleManager(container_name="demo", docker="docker")

    lifecycle.transition(session, IMAGE, PortBinding.parse("80:5000"))

    assert empty_host.remote_commands[-1] == "docker run -d -p 80:5000 --name demo demo:1.0"

def test_already_stopped_container_is_tolerated(docker_host):
    docker_host.stop_errors["c1"] = "Error response from daemon: container c1 is not running"
    session = open_session(docker_host)

    report = manager().transition(session, IMAGE, PORT)

    assert report.removed == ["c1", "c2"]
    assert len(docker_host.containers) == 1

def test_vanished_container_is_tolerated(docker_host):
    session = open_session(docker_host)

    class Racing(ContainerLifecycleManager):
        def observe(self, session, deadline=None):
            state = super().observe(session, deadline)
            docker_host.containers.remove("c2")  # removed by someone else after listing
            return state

    report = Racing(docker="docker").transition(session, IMAGE, PORT)

    assert report.removed == ["c1", "c2"]
    assert docker_host.containers == [report.container_id]

def test_permission_denied_aborts(docker_host):
    docker_host.stop_errors["c2"] = (
        "Got permission denied while trying to connect to the Docker daemon socket"
    )
    session = open_session(docker_host)

    with pytest.raises(DeployError) as excinfo:
        manager().transition(session, IMAGE, PORT)

    assert excinfo.value.step == "stop"
    assert "c2" in str(excinfo.value)
    assert "run" not in docker_host.actions()
    assert "rm" not in docker_host.actions()

def test_pull_failure_names_step(empty_host):
    empty_host.pull_failures = [
        CommandOutput(command="", exit_code=1, stderr="manifest for demo:1.0 not found: manifest unknown"),
    ]
    session = open_session(empty_host)

    with pytest.raises(DeployError) as excinfo:
        manager().transition(session, IMAGE, PORT)

    assert excinfo.value.step == "pull"
    assert "run" not in empty_host.actions()

def test_pull_retries_transient_errors_over_session(empty_host):
    empty_host.pull_failures = [
        CommandOutput(command="", exit_code=1, stderr="dial tcp: i/o timeout"),
    ]
    session = open_session(empty_host)

    manager().transition(session, IMAGE, PORT)

    assert empty_host.actions() == ["ps", "pull", "pull", "run"]

def test_list_failure_names_step(empty_host):
    session = open_session(empty_host)
    empty_host.docker = lambda args, input: CommandOutput(
        command="docker ps -aq", exit_code=1, stderr="permission denied",
    )

    with pytest.raises(DeployError) as excinfo:
        manager().transition(session, IMAGE, PORT)

    assert excinfo.value.step == "list"

def test_session_loss_propagates(docker_host):
    docker_host.lose_session_on = "docker rm"
    session = open_session(docker_host)

    with pytest.raises(SessionLost):
        manager().transition(session, IMAGE, PORT)

    assert docker_host.actions() == ["ps", "stop", "stop", "rm"]

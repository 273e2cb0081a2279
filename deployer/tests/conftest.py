"""Shared fakes for the docker and ssh command line tools."""

import shlex
from itertools import count

import pytest

from deployer.src.models.target import CommandOutput


class FakeDockerHost:
    """
    Plays the part of `ssh` talking to a host running docker.
    Every argv the code would execute is recorded in `calls`.
    """

    def __init__(self, containers=None, connect_ok=True):
        self.containers = list(containers or [])
        self.images = set()
        self.connect_ok = connect_ok
        self.calls = []
        self.remote_commands = []
        self.pull_failures = []
        self.lose_session_on = None
        self.stop_errors = {}
        self.timeout = 600
        self._ids = count(1)

    def run(self, argv, input=None, deadline=None):
        argv = list(argv)
        self.calls.append(argv)
        if argv[0] == "docker":
            return self.local(argv, input)
        if "-O" in argv:
            return CommandOutput(command="ssh -O exit", exit_code=0)

        command = argv[argv.index("--") + 1]
        if command == "true":
            if self.connect_ok:
                return CommandOutput(command=command, exit_code=0)
            return CommandOutput(command=command, exit_code=255, stderr="ssh: connect to host: Connection refused")

        self.remote_commands.append(command)
        if self.lose_session_on and self.lose_session_on in command:
            return CommandOutput(command=command, exit_code=255, stderr="Connection reset by peer")
        return self.docker(shlex.split(command), input)

    def local(self, argv, input):
        """Local docker: build, login and push always work."""
        return CommandOutput(command=shlex.join(argv), exit_code=0, stdout="ok\n")

    def docker(self, args, input):
        command = shlex.join(args)
        action = args[1]
        if action == "ps":
            return CommandOutput(command=command, exit_code=0, stdout="".join(f"{c}\n" for c in self.containers))
        if action in ("stop", "rm"):
            container_id = args[2]
            if container_id in self.stop_errors and action == "stop":
                return CommandOutput(command=command, exit_code=1, stderr=self.stop_errors[container_id])
            if container_id not in self.containers:
                return CommandOutput(
                    command=command, exit_code=1,
                    stderr=f"Error response from daemon: No such container: {container_id}",
                )
            if action == "rm":
                self.containers.remove(container_id)
            return CommandOutput(command=command, exit_code=0, stdout=f"{container_id}\n")
        if action == "pull":
            if self.pull_failures:
                return self.pull_failures.pop(0)
            self.images.add(args[2])
            return CommandOutput(command=command, exit_code=0)
        if action == "login":
            return CommandOutput(command=command, exit_code=0, stdout="Login Succeeded\n")
        if action == "run":
            new_id = f"new{next(self._ids):04d}"
            self.containers.append(new_id)
            return CommandOutput(command=command, exit_code=0, stdout=f"{new_id}\n")
        return CommandOutput(command=command, exit_code=127, stderr=f"unknown action {action}")

    def actions(self):
        return [shlex.split(c)[1] for c in self.remote_commands]


class ScriptedRunner:
    """Returns queued outputs in order and records what was run."""

    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = []
        self.inputs = []
        self.timeout = 600

    def run(self, argv, input=None, deadline=None):
        self.calls.append(list(argv))
        self.inputs.append(input)
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        return output.model_copy(update={"command": shlex.join(argv)})


@pytest.fixture
def docker_host():
    return FakeDockerHost(containers=["c1", "c2"])


@pytest.fixture
def empty_host():
    return FakeDockerHost()


@pytest.fixture
def scripted():
    return ScriptedRunner


@pytest.fixture
def host_factory():
    return FakeDockerHost

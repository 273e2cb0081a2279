"""
Remote execution over OpenSSH.

A Session multiplexes every command of a run over one ssh control
connection. ssh reports transport failures with exit status 255; once that
happens the session is dead and nothing else runs on it.
"""

import logging
import os
import shlex
import shutil
import tempfile
from typing import List, Optional, Sequence, Union

from deployer.src.config import get_settings
from deployer.src.deadline import Deadline
from deployer.src.errors import ConnectError, DeadlineExceeded, ExecError, SessionLost
from deployer.src.models.credential import Credential
from deployer.src.models.target import CommandOutput, HostKeyPolicy, RemoteTarget
from deployer.src.services.runner import CommandRunner, LocalRunner

logger = logging.getLogger(__name__)
settings = get_settings()

SSH_TRANSPORT_FAILURE = 255

HOST_KEY_OPTIONS = {
    HostKeyPolicy.STRICT: ["-o", "StrictHostKeyChecking=yes"],
    HostKeyPolicy.ACCEPT_NEW: ["-o", "StrictHostKeyChecking=accept-new"],
    HostKeyPolicy.SKIP: [
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
    ],
}

class Session:
    """One exclusive ssh session to a target. Use as a context manager."""

    def __init__(self, target: RemoteTarget, runner: CommandRunner, ssh: str, options: List[str], workdir: str):
        self.target = target
        self._runner = runner
        self._ssh = ssh
        self._options = options
        self._workdir = workdir
        self.closed = False
        self.lost = False

    def exec(
        self,
        command: str,
        input: Optional[bytes] = None,
        deadline: Optional[Deadline] = None,
    ) -> CommandOutput:
        if self.closed or self.lost:
            raise SessionLost(self.target.host, command)

        argv = [self._ssh, *self._options, self.target.destination, "--", command]
        logger.debug(f"[{self.target.host}] $ {command}")
        try:
            output = self._runner.run(argv, input=input, deadline=deadline)
        except DeadlineExceeded:
            logger.error(f"[{self.target.host}] deadline exceeded running '{command}', closing session")
            self.close()
            raise

        if output.exit_code == SSH_TRANSPORT_FAILURE:
            self.lost = True
            logger.error(f"[{self.target.host}] session lost: {output.stderr.strip()}")
            self.close()
            raise SessionLost(self.target.host, command)

        return output.model_copy(update={"command": command})

    def run(
        self,
        argv: Sequence[str],
        input: Optional[bytes] = None,
        deadline: Optional[Deadline] = None,
    ) -> CommandOutput:
        return self.exec(shlex.join(argv), input=input, deadline=deadline)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self._runner.run(
                [self._ssh, *self._options, "-O", "exit", self.target.destination],
                deadline=Deadline(settings.ssh_connect_timeout),
            )
        except DeadlineExceeded:
            logger.warning(f"[{self.target.host}] timed out closing control connection")
        finally:
            shutil.rmtree(self._workdir, ignore_errors=True)
            logger.info(f"Closed session to {self.target.host}")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

class RemoteExecutor:
    def __init__(self, runner: Optional[CommandRunner] = None, ssh: Optional[str] = None):
        self.runner = runner or LocalRunner()
        self.ssh = ssh or settings.ssh_binary

    def connect(
        self,
        target: RemoteTarget,
        credential: Credential,
        deadline: Optional[Deadline] = None,
    ) -> Session:
        """
        Open the control connection to `target`.
        Key material is written to a private temp file that lives as long as the session.
        """
        if target.host_key_policy == HostKeyPolicy.SKIP:
            logger.warning(
                f"Host key verification disabled for {target.host}; "
                "only use 'skip' for throwaway hosts"
            )

        workdir = tempfile.mkdtemp(prefix="deployx-")
        key_path = os.path.join(workdir, "key")
        try:
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "wb") as handle:
                handle.write(credential.reveal())
        except BaseException:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        options = [
            "-p", str(target.port),
            "-i", key_path,
            "-o", "IdentitiesOnly=yes",
            "-o", "BatchMode=yes",
            "-o", f"ConnectTimeout={settings.ssh_connect_timeout}",
            "-o", f"ControlPath={os.path.join(workdir, 'control')}",
            *HOST_KEY_OPTIONS[target.host_key_policy],
        ]
        session = Session(target, self.runner, self.ssh, options, workdir)

        logger.info(f"Connecting to {target.destination}:{target.port} ({target.host_key_policy.value})")
        try:
            output = self.runner.run(
                [self.ssh, *options, "-o", "ControlMaster=auto", "-o", "ControlPersist=yes",
                 target.destination, "--", "true"],
                deadline=deadline,
            )
        except DeadlineExceeded:
            session.close()
            raise

        if not output.ok:
            session.close()
            detail = output.stderr.strip().splitlines()[-1] if output.stderr.strip() else f"exit code {output.exit_code}"
            raise ConnectError(
                f"Cannot connect to {target.destination} with credential '{credential.label}': {detail}"
            )

        logger.info(f"Connected to {target.host}")
        return session

    def exec(
        self,
        session: Session,
        command: str,
        deadline: Optional[Deadline] = None,
        input: Optional[bytes] = None,
    ) -> CommandOutput:
        return session.exec(command, input=input, deadline=deadline)

    def exec_sequence(
        self,
        session: Session,
        commands: Sequence[Union[str, Sequence[str]]],
        deadline: Optional[Deadline] = None,
        check: bool = False,
    ) -> List[CommandOutput]:
        """
        Run commands one after another on one session.
        SessionLost aborts the rest of the sequence; with `check`, so does a non-zero exit.
        """
        outputs = []
        for command in commands:
            if not isinstance(command, str):
                command = shlex.join(command)
            output = session.exec(command, deadline=deadline)
            outputs.append(output)
            if check and not output.ok:
                raise ExecError(f"'{command}' on {session.target.host} exited with {output.exit_code}")
        return outputs

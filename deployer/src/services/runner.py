"""
Local command execution.

Anything that can `run(argv, input=..., deadline=...)` and hand back a
CommandOutput is a command runner: LocalRunner here, or a remote Session.
"""

import logging
import shlex
import subprocess
from typing import Optional, Sequence, Protocol

from deployer.src.config import get_settings
from deployer.src.deadline import Deadline, timeout_for
from deployer.src.errors import DeadlineExceeded
from deployer.src.models.target import CommandOutput

logger = logging.getLogger(__name__)
settings = get_settings()

class CommandRunner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        input: Optional[bytes] = None,
        deadline: Optional[Deadline] = None,
    ) -> CommandOutput:
        ...

class LocalRunner:
    """Runs commands on this machine."""

    def __init__(self, cwd: Optional[str] = None, timeout: Optional[float] = None):
        self.cwd = cwd
        self.timeout = timeout if timeout is not None else settings.command_timeout

    def run(
        self,
        argv: Sequence[str],
        input: Optional[bytes] = None,
        deadline: Optional[Deadline] = None,
    ) -> CommandOutput:
        return self._run(list(argv), shlex.join(argv), input, deadline, shell=False)

    def shell(self, command: str, deadline: Optional[Deadline] = None) -> CommandOutput:
        return self._run(command, command, None, deadline, shell=True)

    def _run(self, args, display: str, input, deadline, shell: bool) -> CommandOutput:
        if deadline is not None:
            deadline.check(display)

        logger.debug(f"Running locally: {display}")
        try:
            result = subprocess.run(
                args,
                input=input,
                cwd=self.cwd,
                shell=shell,
                capture_output=True,
                timeout=timeout_for(deadline, self.timeout),
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out: {display}")
            raise DeadlineExceeded(display)
        except FileNotFoundError as e:
            return CommandOutput(command=display, exit_code=127, stderr=str(e))

        return CommandOutput(
            command=display,
            exit_code=result.returncode,
            stdout=result.stdout.decode("utf-8", errors="replace"),
            stderr=result.stderr.decode("utf-8", errors="replace"),
        )

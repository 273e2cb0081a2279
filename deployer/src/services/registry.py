"""
Registry client - login, push and pull through the docker CLI.

The client runs over any command runner, so the same code pushes from the
build machine and pulls on the deploy host through an SSH session.
"""

import logging
from typing import Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from deployer.src.config import get_settings
from deployer.src.deadline import Deadline
from deployer.src.errors import AuthError, RegistryError, RegistryUnavailable
from deployer.src.models.credential import Credential
from deployer.src.models.target import CommandOutput, ImageReference
from deployer.src.services.runner import CommandRunner

logger = logging.getLogger(__name__)
settings = get_settings()

AUTH_MARKERS = (
    "unauthorized",
    "denied",
    "authentication required",
    "incorrect username or password",
)

TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "connection reset",
    "connection refused",
    "tls handshake",
    "temporary failure",
    "unexpected eof",
    "502 bad gateway",
    "503 service unavailable",
    "504 gateway timeout",
    "toomanyrequests",
)

class TransientRegistryFailure(Exception):
    """Network-class failure; retried until the attempt budget runs out."""

    def __init__(self, output: CommandOutput):
        self.output = output
        super().__init__(output.stderr.strip() or f"exit code {output.exit_code}")

def classify(output: CommandOutput) -> str:
    """Returns 'ok', 'auth', 'transient' or 'error' for a docker CLI result."""
    if output.ok:
        return "ok"
    text = f"{output.stderr}\n{output.stdout}".lower()
    if any(marker in text for marker in AUTH_MARKERS):
        return "auth"
    if any(marker in text for marker in TRANSIENT_MARKERS):
        return "transient"
    return "error"

class RegistryClient:
    def __init__(
        self,
        runner: CommandRunner,
        registry: str = "",
        max_retries: Optional[int] = None,
        backoff: Optional[float] = None,
        sleep: Optional[Callable[[float], None]] = None,
        docker: Optional[str] = None,
    ):
        self.runner = runner
        self.registry = registry
        self.max_retries = settings.registry_max_retries if max_retries is None else max_retries
        self.backoff = settings.registry_backoff if backoff is None else backoff
        self.sleep = sleep
        self.docker = docker or settings.docker_binary
        self._credential: Optional[Credential] = None

    def authenticate(self, credential: Credential, username: str, deadline: Optional[Deadline] = None):
        """Log in with `credential`. Rejected credentials are never retried."""
        argv = [self.docker, "login", "--username", username, "--password-stdin"]
        if self.registry:
            argv.append(self.registry)

        logger.info(f"Authenticating to {self.registry or 'default registry'} as {username} "
                    f"using credential '{credential.label}'")

        def attempt():
            if deadline is not None:
                deadline.check("registry login")
            output = self.runner.run(argv, input=credential.reveal(), deadline=deadline)
            kind = classify(output)
            if kind == "transient":
                raise TransientRegistryFailure(output)
            if kind != "ok":
                detail = credential.scrub(output.stderr.strip().splitlines()[-1] if output.stderr.strip() else "")
                raise AuthError(credential.label, detail)

        self._retrying("login", attempt, deadline)
        self._credential = credential

    def push(self, ref: ImageReference, deadline: Optional[Deadline] = None):
        self._transfer("push", ref, deadline)

    def pull(self, ref: ImageReference, deadline: Optional[Deadline] = None):
        self._transfer("pull", ref, deadline)

    def _transfer(self, operation: str, ref: ImageReference, deadline: Optional[Deadline]):
        argv = [self.docker, operation, str(ref)]

        def attempt():
            if deadline is not None:
                deadline.check(f"registry {operation}")
            output = self.runner.run(argv, deadline=deadline)
            kind = classify(output)
            if kind == "transient":
                raise TransientRegistryFailure(output)
            if kind == "auth":
                label = self._credential.label if self._credential else "anonymous"
                raise AuthError(label, f"registry refused {operation} of {ref}")
            if kind == "error":
                raise RegistryError(f"{operation} of {ref} failed: {self._scrub(output.stderr.strip())}")

        logger.info(f"Registry {operation} {ref}")
        self._retrying(f"{operation} {ref}", attempt, deadline)
        logger.info(f"Registry {operation} {ref} complete")

    def _retrying(self, operation: str, attempt: Callable[[], None], deadline: Optional[Deadline] = None):
        backoff = wait_exponential(multiplier=self.backoff, max=30)

        def wait(retry_state) -> float:
            # Never sleep past the deadline; the next attempt then fails its check
            delay = backoff(retry_state)
            if deadline is None:
                return delay
            return min(delay, deadline.remaining())

        kwargs = {
            "stop": stop_after_attempt(self.max_retries + 1),
            "wait": wait,
            "retry": retry_if_exception_type(TransientRegistryFailure),
            "before_sleep": self._before_sleep,
        }
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep

        try:
            Retrying(**kwargs)(attempt)
        except RetryError as e:
            last = e.last_attempt
            detail = self._scrub(str(last.exception()))
            logger.error(f"Registry {operation} gave up after {last.attempt_number} attempts")
            raise RegistryUnavailable(operation, last.attempt_number, detail)

    def _before_sleep(self, retry_state):
        logger.warning(
            f"Transient registry failure (attempt {retry_state.attempt_number}), retrying: "
            f"{self._scrub(str(retry_state.outcome.exception()))}"
        )

    def _scrub(self, text: str) -> str:
        if self._credential is None:
            return text
        return self._credential.scrub(text)

"""Toolchain command execution and output classification."""

import asyncio
import contextlib
import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional, Sequence

from ..errors import ProcessFailure, ToolchainFailure, ToolchainTimeout
from .models import CommandResult

logger = logging.getLogger(__name__)

# Matched case-insensitively anywhere in the combined output
FAILURE_KEYWORDS = (
    "error",
    "failed",
    "unable to",
    "cannot",
    "bad",
    "invalid",
)

# Printed by openssl on successful ledger updates; these override both
# the exit status and the keyword scan.
BENIGN_PHRASES = (
    "Database updated",
    "Write out database",
)

_FAILURE_PATTERN = re.compile(
    "|".join(re.escape(k) for k in FAILURE_KEYWORDS),
    re.IGNORECASE,
)


def classify_output(output: str, returncode: Optional[int] = 0) -> bool:
    """
    Decide whether a toolchain invocation succeeded.

    easy-rsa writes progress to stderr and does not keep a reliable exit
    code contract, so the verdict is inferred from the output text.

    Args:
        output: Combined stdout and stderr
        returncode: Process exit status

    Returns:
        True if the invocation is considered successful
    """
    if any(phrase in output for phrase in BENIGN_PHRASES):
        return True

    if returncode:
        return False

    return _FAILURE_PATTERN.search(output) is None


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill a child that is still running and reap it."""
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    await proc.wait()


class CommandRunner:
    """Runs toolchain commands with an explicit working directory."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize the command runner.

        Args:
            timeout: Default per-command timeout in seconds (None waits forever)
        """
        self.timeout = timeout

    async def run(
        self,
        argv: Sequence[str],
        cwd: Path,
        extra_env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None
    ) -> CommandResult:
        """
        Execute one command and classify its output.

        Args:
            argv: Program and arguments (no shell)
            cwd: Working directory for this invocation only
            extra_env: Variables overlaid on the process environment
            timeout: Overrides the default timeout for this call

        Returns:
            CommandResult of a successful invocation

        Raises:
            ProcessFailure: If the command cannot be spawned
            ToolchainTimeout: If the command exceeds its time limit
            ToolchainFailure: If the output is classified as a failure
        """
        argv = [str(a) for a in argv]
        limit = timeout if timeout is not None else self.timeout
        env = {**os.environ, **(extra_env or {})}

        logger.debug(f"Running {' '.join(argv)} (cwd: {cwd})")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env=env,
            )
        except OSError as e:
            logger.error(f"Failed to spawn {argv[0]}: {e}")
            raise ProcessFailure(f"Failed to spawn {argv[0]}: {e}") from e

        try:
            if limit:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=limit)
            else:
                stdout, stderr = await proc.communicate()
        except asyncio.TimeoutError:
            await _kill(proc)
            logger.error(f"Command timed out after {limit}s: {' '.join(argv)}")
            raise ToolchainTimeout(argv, limit)
        except BaseException:
            # No child outlives its caller
            await _kill(proc)
            logger.warning(f"Command interrupted, child killed: {' '.join(argv)}")
            raise

        output = stdout.decode(errors="replace") + stderr.decode(errors="replace")
        result = CommandResult(
            combined_output=output,
            succeeded=classify_output(output, proc.returncode),
            returncode=proc.returncode,
        )

        if not result.succeeded:
            logger.error(f"Command failed ({proc.returncode}): {' '.join(argv)}\n{output}")
            raise ToolchainFailure(output, proc.returncode)

        return result

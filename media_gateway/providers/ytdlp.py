"""Asynchronous yt-dlp subprocess runner."""

import asyncio
from dataclasses import dataclass
from typing import List, Sequence

import structlog

from media_gateway.providers.exceptions import ProviderError, ToolMissingError

logger = structlog.get_logger(__name__)


class CommandTimeoutError(ProviderError):
    """Raised when yt-dlp does not exit before its deadline."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"yt-dlp timed out after {timeout}s")


@dataclass
class CommandResult:
    """Exit status and decoded output streams of a yt-dlp run."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class YtDlpRunner:
    """Runs the yt-dlp executable with an argv list and a hard timeout."""

    def __init__(self, executable: str = "yt-dlp"):
        self.executable = executable

    def build_command(self, args: Sequence[str]) -> List[str]:
        return [self.executable, *args]

    async def run(self, args: Sequence[str], timeout: float) -> CommandResult:
        """
        Execute yt-dlp and wait for it to exit.

        Args:
            args: Arguments passed after the executable name
            timeout: Wall-clock limit in seconds; the process is killed on expiry

        Returns:
            CommandResult, including for non-zero exits

        Raises:
            ToolMissingError: If the executable cannot be found
            CommandTimeoutError: If the timeout fires
        """
        cmd = self.build_command(args)
        logger.debug("executing_ytdlp", command=cmd, timeout=timeout)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.error("ytdlp_not_found", executable=self.executable)
            raise ToolMissingError("ytdlp", "yt-dlp is not installed or not in PATH")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("ytdlp_timeout", timeout=timeout)
            raise CommandTimeoutError(timeout)

        result = CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
        )

        logger.debug(
            "ytdlp_execution_completed",
            exit_code=result.returncode,
            stdout_lines=len(result.stdout.splitlines()),
            stderr_preview=result.stderr[:500] or None,
        )
        return result

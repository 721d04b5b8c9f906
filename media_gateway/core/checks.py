"""External tool availability probes.

yt-dlp performs the extraction and shells out to ffmpeg for merging and
audio conversion; both must be invocable before any retrieval starts.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog

from media_gateway.providers.exceptions import ToolMissingError

logger = structlog.get_logger(__name__)


@dataclass
class CheckResult:
    """Result of a tool availability check.

    Attributes:
        name: Tool name ("ytdlp" or "ffmpeg")
        available: Whether the tool ran and exited cleanly
        version: Version string if available
        error: Error message if check failed
    """

    name: str
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


async def _run_binary_check(
    name: str,
    command: List[str],
    timeout: float,
    parse_version: Callable[[bytes], str],
) -> CheckResult:
    """Run a version check with common error handling."""
    proc = None
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)

        if proc.returncode == 0:
            return CheckResult(name=name, available=True, version=parse_version(stdout))

        return CheckResult(
            name=name,
            available=False,
            error=f"{command[0]} returned non-zero exit code",
        )
    except asyncio.TimeoutError:
        if proc:
            proc.kill()
            await proc.wait()
        return CheckResult(name=name, available=False, error=f"{command[0]} check timed out")
    except FileNotFoundError:
        return CheckResult(name=name, available=False, error=f"{command[0]} not found")
    except OSError as e:
        return CheckResult(name=name, available=False, error=str(e))


async def check_ytdlp(timeout: float = 5.0) -> CheckResult:
    """Check yt-dlp availability and version."""
    return await _run_binary_check(
        name="ytdlp",
        command=["yt-dlp", "--version"],
        timeout=timeout,
        parse_version=lambda stdout: stdout.decode().strip(),
    )


async def check_ffmpeg(timeout: float = 5.0) -> CheckResult:
    """Check ffmpeg availability and version."""

    def parse_version(stdout: bytes) -> str:
        match = re.search(r"ffmpeg version (\S+)", stdout.decode())
        return match.group(1) if match else "unknown"

    return await _run_binary_check(
        name="ffmpeg",
        command=["ffmpeg", "-version"],
        timeout=timeout,
        parse_version=parse_version,
    )


async def ensure_tools(timeout: float = 5.0) -> None:
    """Verify yt-dlp and ffmpeg are both invocable.

    Raises:
        ToolMissingError: For the first tool that is not available.
    """
    for check, install_hint in (
        (check_ytdlp, "yt-dlp is not installed. Install yt-dlp and try again."),
        (check_ffmpeg, "FFmpeg is not installed. Install ffmpeg and try again."),
    ):
        result = await check(timeout=timeout)
        if not result.available:
            logger.error("tool_missing", tool=result.name, error=result.error)
            raise ToolMissingError(result.name, install_hint)

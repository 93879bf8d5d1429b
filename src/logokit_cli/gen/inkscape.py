from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
from pathlib import Path
from typing import Optional, Sequence

from ..errors import ToolError, ToolNotFoundError, ToolTimeoutError
from ..schema import VectorFormat

logger = logging.getLogger(__name__)

_STDERR_TAIL = 500


def check_tool(command: Sequence[str]) -> bool:
    """Check if the vector tool executable is available."""
    exe = command[0]
    if os.sep in exe:
        return Path(exe).is_file() and os.access(exe, os.X_OK)
    return shutil.which(exe) is not None


def trace_command(command: Sequence[str], src: Path, dst: Path, simplify: bool = True) -> list[str]:
    """Raster to plain SVG."""
    cmd = [*command, str(src), "--export-type=svg", "--export-plain-svg"]
    if simplify:
        cmd.append("--actions=select-all:all;path-simplify")
    cmd.append(f"--export-filename={dst}")
    return cmd


def export_command(command: Sequence[str], src: Path, dst: Path, fmt: VectorFormat) -> list[str]:
    """SVG to PDF or EPS."""
    return [*command, str(src), f"--export-type={fmt.value}", f"--export-filename={dst}"]


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


async def run_tool(
    cmd: list[str],
    timeout_sec: float,
    identity: Optional[str] = None,
) -> None:
    """Run one tool invocation; the process is killed on timeout or cancellation.

    Raises:
        ToolNotFoundError: the executable does not exist
        ToolTimeoutError: the invocation exceeded ``timeout_sec``
        ToolError: non-zero exit status
    """
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except FileNotFoundError as e:
        raise ToolNotFoundError(cmd[0], identity) from e
    except PermissionError as e:
        raise ToolError(f"cannot execute {cmd[0]}: {e}", identity) from e

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_sec)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        logger.warning("%s killed after %gs", identity or cmd[0], timeout_sec)
        raise ToolTimeoutError(timeout_sec, identity) from None
    except asyncio.CancelledError:
        _kill(proc)
        await proc.wait()
        raise

    if proc.returncode != 0:
        tail = (stderr or b"").decode("utf-8", errors="replace").strip()[-_STDERR_TAIL:]
        raise ToolError(
            f"{Path(cmd[0]).name} exited with status {proc.returncode}: {tail}",
            identity,
            returncode=proc.returncode,
            stderr=tail,
        )

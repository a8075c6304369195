"""
Audio Probe Service

Duration probing through ffprobe, run as a bounded child process.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class DurationProbe:
    """Reads an audio file's duration in seconds using ffprobe."""

    def __init__(self, ffprobe_bin: str = "ffprobe", timeout: float = 10.0):
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout

    def _build_command(self, path: Path) -> list[str]:
        return [
            self.ffprobe_bin,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]

    async def __call__(self, path: Path) -> Optional[float]:
        """Return the duration, or None if the file cannot be probed."""
        cmd = self._build_command(path)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError:
            logger.warning(f"ffprobe not found at {self.ffprobe_bin}")
            return None

        try:
            out, err = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"ffprobe timed out after {self.timeout}s on {path.name}")
            process.kill()
            await process.wait()
            return None

        if process.returncode != 0:
            logger.warning(f"ffprobe failed on {path.name}: {err.decode(errors='replace').strip()}")
            return None

        try:
            duration = float(out.decode().strip())
        except ValueError:
            logger.warning(f"ffprobe returned no duration for {path.name}")
            return None

        if duration < 0:
            return None
        return round(duration, 3)

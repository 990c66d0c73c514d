"""
Safe shell tool for worker agents.

Runs read commands (ls, cat, find, grep...) and redirect-style writes
(echo "x" > file) in a fixed working directory. Anything that looks like a
deletion is refused before a process is started.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .base import BaseTool, ToolResult

logger = logging.getLogger(__name__)

DELETE_PATTERNS = [
    r"\brm\b",
    r"\bdel\b",
    r"\bdelete\b",
    r"\btruncate\b",
    r"\bunlink\b",
    r"\brmdir\b",
    r"\bremove\b",
]


@dataclass
class ShellConfig:
    """Configuration for shell command execution."""

    workdir: str = "."
    timeout_seconds: int = 10
    max_output_chars: int = 10000
    blocked_patterns: list[str] = field(default_factory=lambda: list(DELETE_PATTERNS))


class RunSafeShellTool(BaseTool):
    """Execute a non-destructive shell command."""

    def __init__(self, config: ShellConfig | None = None):
        self.config = config or ShellConfig()
        self._blocked = [re.compile(p, re.IGNORECASE) for p in self.config.blocked_patterns]

    @property
    def name(self) -> str:
        return "run_safe_shell"

    @property
    def description(self) -> str:
        return (
            "Run a local shell command. Reads: ls, cat, head, tail, grep, find, wc. "
            'Writes: echo "text" > file (overwrite) or echo "text" >> file (append). '
            "Deleting files or directories (rm, del, rmdir...) is never allowed."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to run (no deletions)",
                },
            },
            "required": ["command"],
        }

    def is_allowed(self, command: str) -> bool:
        """Check a command against the deletion blocklist."""
        trimmed = command.strip()
        if not trimmed:
            return False
        return not any(pattern.search(trimmed) for pattern in self._blocked)

    def _truncate_output(self, output: str) -> str:
        if len(output) > self.config.max_output_chars:
            return output[: self.config.max_output_chars] + "\n\n... (truncated)"
        return output

    async def execute(self, command: str = "", **kwargs: Any) -> ToolResult:
        if not self.is_allowed(command):
            return ToolResult(
                success=False,
                error="Command refused: deleting files or directories (rm, del, rmdir...) is not allowed.",
            )

        cwd = Path(self.config.workdir).expanduser()
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
            )
            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(),
                    timeout=self.config.timeout_seconds,
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                return ToolResult(
                    success=False,
                    error=f"Command failed: timed out after {self.config.timeout_seconds} seconds",
                )
        except OSError as e:
            logger.error(f"Error starting command: {e}")
            return ToolResult(success=False, error=f"Command failed: {e}")

        out = stdout.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            detail = err or out or "no output"
            return ToolResult(
                success=False,
                error=self._truncate_output(
                    f"Command failed (exit code {process.returncode}): {detail}"
                ),
            )

        return ToolResult(success=True, output=self._truncate_output(out) or "(no output)")

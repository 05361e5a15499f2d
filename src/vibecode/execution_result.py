from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one script run or git invocation.

    ``exit_status`` is None when no process ran to completion (skipped,
    interpreter missing, timed out).
    """

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_status: int | None = None
    skipped: bool = False
    interactive: bool = False
    reason: str = ""

    @property
    def ok(self) -> bool:
        return not self.skipped and self.exit_status == 0

    @classmethod
    def completed(
        cls,
        command: str,
        stdout: str,
        stderr: str,
        exit_status: int,
        interactive: bool = False,
    ) -> "ExecutionResult":
        return cls(
            command=command,
            stdout=stdout or "",
            stderr=stderr or "",
            exit_status=exit_status,
            interactive=interactive,
        )

    @classmethod
    def not_run(cls, command: str, reason: str) -> "ExecutionResult":
        """A candidate that was deliberately not executed."""
        return cls(command=command, skipped=True, reason=reason)

    @classmethod
    def failed_to_start(cls, command: str, reason: str) -> "ExecutionResult":
        """A process that was attempted but never produced an exit status."""
        return cls(command=command, stderr=reason, reason=reason)

    def summary(self) -> str:
        """Plain-text block used in the report sent back to the model."""
        if self.skipped:
            return f"$ {self.command}\n(skipped: {self.reason})"
        lines = [f"$ {self.command}"]
        if self.exit_status is None:
            lines.append(f"(did not complete: {self.reason or 'unknown error'})")
        else:
            lines.append(f"exit status: {self.exit_status}")
        if self.interactive:
            lines.append("(interactive session; output went to the terminal)")
        if self.stdout.strip():
            lines.append(f"stdout:\n{self.stdout.rstrip()}")
        if self.stderr.strip() and self.stderr.strip() != self.reason:
            lines.append(f"stderr:\n{self.stderr.rstrip()}")
        return "\n".join(lines)

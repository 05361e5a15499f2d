"""Git command risk classification and gated execution."""

from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from vibecode.execution_result import ExecutionResult

if TYPE_CHECKING:
    from vibecode.permissions import ApprovalGate
    from vibecode.renderer import Renderer

_log = logging.getLogger(__name__)

SAFE_SUBCOMMANDS = frozenset({
    "status",
    "diff",
    "log",
    "branch",
    "remote",
    "fetch",
    "pull",
})

MUTATING_SUBCOMMANDS = frozenset({
    "add",
    "commit",
    "push",
    "checkout",
    "merge",
    "rebase",
    "reset",
    "rm",
    "stash",
    "tag",
})

DESTRUCTIVE_PATTERNS = [
    r"\bpush\b.*(\s--force\b|\s-f\b|\s--force-with-lease\b)",
    r"\breset\b.*\s--hard\b",
    r"\bclean\b.*\s-[a-z]*f",
    r"\bbranch\b.*\s(-D|--force)\b",
    r"\bremote\s+(remove|rm)\b",
    r"\bcheckout\b.*\s(--\s+\.|\.)$",
    r"\brebase\b",
    r"\bstash\s+(drop|clear)\b",
]


class TrustTier(Enum):
    SAFE = "safe"
    CONFIRM = "confirm"
    REJECTED = "rejected"


def classify(words: Sequence[str], program: str = "git") -> TrustTier:
    """Classify a tokenized command.

    Read-only git subcommands are SAFE. Every other git invocation, known
    mutating or unrecognized, needs confirmation. Anything that is not git is
    REJECTED.
    """
    if not words or words[0] != program:
        return TrustTier.REJECTED
    subcommand = words[1] if len(words) > 1 else ""
    if subcommand in SAFE_SUBCOMMANDS:
        return TrustTier.SAFE
    return TrustTier.CONFIRM


def is_destructive(command: str) -> bool:
    """Check if a git command rewrites history or discards work."""
    return any(re.search(pattern, command) for pattern in DESTRUCTIVE_PATTERNS)


def _writes_anyway(command: str, words: Sequence[str]) -> bool:
    """A read-only subcommand used with options that delete refs or write files."""
    return is_destructive(command) or any(
        word == "--output" or word.startswith("--output=") for word in words[2:]
    )


def mentions_program(text: str, program: str = "git") -> bool:
    """True when free-form user text names the version-control tool."""
    return re.search(rf"(?<![\w-]){re.escape(program)}(?![\w-])", text, re.IGNORECASE) is not None


class GitRunner:
    """Runs model-requested git commands inside the workspace, gated by tier."""

    def __init__(
        self,
        workspace_root: str | Path,
        approvals: "ApprovalGate",
        renderer: "Renderer | None" = None,
        program: str = "git",
        timeout: float | None = None,
    ) -> None:
        self.workspace_root = str(Path(workspace_root).resolve())
        self.approvals = approvals
        self.renderer = renderer
        self.program = program
        self.timeout = timeout

    def run(self, command: str) -> ExecutionResult:
        command = command.strip()
        try:
            words = shlex.split(command)
        except ValueError as exc:
            return self._refuse(command, f"could not parse command: {exc}")

        tier = classify(words, self.program)
        if tier is TrustTier.SAFE and _writes_anyway(command, words):
            tier = TrustTier.CONFIRM
        _log.debug("git command %r classified as %s", command, tier.value)

        if tier is TrustTier.REJECTED:
            return self._refuse(command, f"only {self.program} commands are allowed")

        if not self.is_repository():
            return self._refuse(command, "not inside a git repository")

        if tier is TrustTier.CONFIRM and not self._confirm(command, words):
            if self.renderer:
                self.renderer.print_warning("  Command cancelled.")
            return ExecutionResult.not_run(command, "declined by user")

        return self._execute(command, words)

    def is_repository(self) -> bool:
        try:
            proc = subprocess.run(
                [self.program, "rev-parse", "--is-inside-work-tree"],
                capture_output=True,
                text=True,
                cwd=self.workspace_root,
                timeout=15,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return proc.returncode == 0 and proc.stdout.strip() == "true"

    def _confirm(self, command: str, words: list[str]) -> bool:
        if self.renderer:
            self.renderer.print_warning(f"\nAI wants to run:\n  {command}")
            if len(words) > 1 and words[1] not in MUTATING_SUBCOMMANDS | SAFE_SUBCOMMANDS:
                self.renderer.print_warning(f"  unrecognized subcommand '{words[1]}'")
            if is_destructive(command):
                self.renderer.print_warning("  ⚠  destructive command, review carefully")
        return self.approvals.confirm("Allow this git command?")

    def _execute(self, command: str, words: list[str]) -> ExecutionResult:
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            proc = subprocess.run(
                words,
                capture_output=True,
                text=True,
                cwd=self.workspace_root,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            result = ExecutionResult.failed_to_start(
                command, f"timed out after {self.timeout} seconds"
            )
        except OSError as exc:
            result = ExecutionResult.failed_to_start(command, f"could not start {self.program}: {exc}")
        else:
            result = ExecutionResult.completed(command, proc.stdout, proc.stderr, proc.returncode)

        self._show(result)
        return result

    def _refuse(self, command: str, reason: str) -> ExecutionResult:
        if self.renderer:
            self.renderer.print_error(f"  Refused '{command}': {reason}")
        return ExecutionResult.not_run(command, reason)

    def _show(self, result: ExecutionResult) -> None:
        if self.renderer is None:
            return
        if result.ok:
            if result.stdout.strip():
                self.renderer.show(result.stdout.rstrip())
        else:
            self.renderer.print_error(
                (result.stderr or result.stdout).strip() or f"{result.command} failed"
            )

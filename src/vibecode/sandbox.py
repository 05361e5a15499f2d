"""Script execution sandbox.

Only scripts written during the current round are candidates, and only when a
heuristic says they do something when run. The heuristic looks at text, not at
a parse tree:

1. A "run as main program" guard or an output call anywhere => runnable.
2. Otherwise the last non-blank, non-comment line decides: a bare expression or
   call is runnable, a declaration or block close is not.

Scripts that read from the terminal are handed the terminal outright, and the
line discipline is restored afterwards no matter how the child exits.
"""

from __future__ import annotations

import contextlib
import logging
import re
import signal
import subprocess
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from vibecode.execution_result import ExecutionResult

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptLanguage:
    """Text patterns describing how one scripting language looks."""

    name: str
    extension: str
    interpreter: str
    comment_prefix: str
    main_guard: re.Pattern
    output_call: re.Pattern
    interactive: re.Pattern
    declaration: re.Pattern
    block_by_indent: bool = False


RUBY = ScriptLanguage(
    name="ruby",
    extension=".rb",
    interpreter="ruby",
    comment_prefix="#",
    main_guard=re.compile(r"^\s*if\s+(__FILE__\s*==\s*\$(0|PROGRAM_NAME)|\$(0|PROGRAM_NAME)\s*==\s*__FILE__)", re.M),
    output_call=re.compile(
        r"^\s*(puts|print|printf|p|pp|putc|warn)\b(?!\s*[=:])"
        r"|\$stdout\.(puts|print|write)|STDOUT\.(puts|print|write)",
        re.M,
    ),
    interactive=re.compile(
        r"\bgets\b|\$stdin\b|\bSTDIN\b|\bReadline\b|\breadline\b|io/console|\bgetch\b"
        r"|\braw!|\bcurses\b|\bCurses\b|\bTTY::"
    ),
    declaration=re.compile(
        r"^(end\b|}|\]|\)|def\s|class\s|module\s|require(_relative)?\b|include\s|extend\s"
        r"|attr_(reader|writer|accessor)\b|private\b|protected\b|public\b"
        r"|[A-Z][A-Za-z0-9_]*\s*=[^=]|[a-z_][A-Za-z0-9_]*\s*(\|\|)?=[^=~])"
    ),
)

PYTHON = ScriptLanguage(
    name="python",
    extension=".py",
    interpreter="python3",
    comment_prefix="#",
    main_guard=re.compile(r"^if\s+__name__\s*==\s*['\"]__main__['\"]\s*:", re.M),
    output_call=re.compile(r"(^|[^.\w])print\s*\(|sys\.stdout\.write\s*\(", re.M),
    interactive=re.compile(
        r"(^|[^.\w])input\s*\(|sys\.stdin\b|\breadline\b|\bcurses\b|\bgetpass\b|\btermios\b"
        r"|\bimport\s+tty\b|\bprompt_toolkit\b"
    ),
    declaration=re.compile(
        r"^(def\s|async\s+def\s|class\s|import\s|from\s|@|return\b|pass\b|\)|\]|}"
        r"|[A-Za-z_][A-Za-z0-9_.]*\s*(:[^=]+)?=[^=])"
    ),
    block_by_indent=True,
)

LANGUAGES = {language.name: language for language in (RUBY, PYTHON)}


def get_language(name: str) -> ScriptLanguage:
    try:
        return LANGUAGES[name]
    except KeyError:
        raise ValueError(f"Unsupported script language: {name!r}") from None


def _last_code_line(content: str, comment_prefix: str) -> str | None:
    for line in reversed(content.splitlines()):
        if line.strip() and not line.strip().startswith(comment_prefix):
            return line
    return None


def is_executable(content: str, language: ScriptLanguage = RUBY) -> bool:
    """Guess whether running the script would visibly do something."""
    if language.main_guard.search(content) or language.output_call.search(content):
        return True

    last = _last_code_line(content, language.comment_prefix)
    if last is None:
        return False
    if language.block_by_indent and last[:1].isspace():
        return False
    return not language.declaration.match(last.strip())


def is_interactive(content: str, language: ScriptLanguage = RUBY) -> bool:
    """True if the script reads from the terminal."""
    return language.interactive.search(content) is not None


@contextlib.contextmanager
def terminal_handoff() -> Iterator[None]:
    """Lend the controlling terminal to a child process.

    SIGINT is ignored in this process while the child runs. An ignored
    disposition survives exec, so children started inside the block must reset
    it themselves (see _child_default_sigint). On exit the saved termios
    settings, the SIGINT handler and any closed standard streams are restored.
    """
    for stream in (sys.stdout, sys.stderr):
        with contextlib.suppress(Exception):
            stream.flush()

    fd = None
    saved_attrs = None
    if sys.platform != "win32":
        import termios

        with contextlib.suppress(AttributeError, ValueError, OSError):
            if sys.stdin.isatty():
                fd = sys.stdin.fileno()
                saved_attrs = termios.tcgetattr(fd)

    previous_sigint = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        if saved_attrs is not None:
            import termios

            try:
                termios.tcsetattr(fd, termios.TCSADRAIN, saved_attrs)
            except termios.error as exc:
                _log.warning("Could not restore terminal settings: %s", exc)
        signal.signal(signal.SIGINT, previous_sigint)
        for name in ("stdin", "stdout", "stderr"):
            stream = getattr(sys, name)
            if stream is None or stream.closed:
                setattr(sys, name, getattr(sys, f"__{name}__"))


class ScriptSandbox:
    """Decides which freshly written scripts run, and runs them in the workspace."""

    def __init__(
        self,
        workspace_root: str | Path,
        language: ScriptLanguage = RUBY,
        timeout: float | None = None,
    ) -> None:
        self.workspace_root = Path(workspace_root).resolve()
        self.language = language
        self.timeout = timeout

    def command_for(self, path: str) -> str:
        return f"{self.language.interpreter} {path}"

    def is_candidate(self, path: str) -> bool:
        return path.endswith(self.language.extension)

    def is_executable(self, content: str) -> bool:
        return is_executable(content, self.language)

    def is_interactive(self, content: str) -> bool:
        return is_interactive(content, self.language)

    def run(self, path: str, written_this_round: Iterable[str]) -> ExecutionResult:
        """Run a workspace-relative script if it is eligible.

        Ineligible paths come back with ``skipped=True`` and nothing is spawned.
        """
        command = self.command_for(path)
        if not self.is_candidate(path):
            return ExecutionResult.not_run(command, f"not a {self.language.extension} script")
        if path not in set(written_this_round):
            return ExecutionResult.not_run(command, "not written this round")

        script = self.workspace_root / path
        try:
            content = script.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            return ExecutionResult.not_run(command, f"could not read script: {exc}")
        if not self.is_executable(content):
            return ExecutionResult.not_run(command, "script only declares code")

        argv = [self.language.interpreter, path]
        if self.is_interactive(content):
            return self._run_interactive(command, argv)
        return self._run_captured(command, argv)

    def _run_captured(self, command: str, argv: list[str]) -> ExecutionResult:
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                cwd=str(self.workspace_root),
                stdin=subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            _log.warning("%s timed out after %s seconds", command, self.timeout)
            return ExecutionResult(
                command=command,
                stdout=_text(exc.stdout),
                stderr=_text(exc.stderr),
                reason=f"timed out after {self.timeout} seconds",
            )
        except OSError as exc:
            return ExecutionResult.failed_to_start(
                command, f"could not start {self.language.interpreter}: {exc}"
            )
        return ExecutionResult.completed(command, proc.stdout, proc.stderr, proc.returncode)

    def _run_interactive(self, command: str, argv: list[str]) -> ExecutionResult:
        try:
            with terminal_handoff():
                proc = subprocess.run(
                    argv,
                    cwd=str(self.workspace_root),
                    preexec_fn=_child_default_sigint if sys.platform != "win32" else None,
                )
        except OSError as exc:
            return ExecutionResult.failed_to_start(
                command, f"could not start {self.language.interpreter}: {exc}"
            )
        return ExecutionResult.completed(command, "", "", proc.returncode, interactive=True)


def _child_default_sigint() -> None:
    signal.signal(signal.SIGINT, signal.SIG_DFL)


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data

"""Workspace guard - sandboxed file access under a single project root.

Every path the model hands us goes through resolve_path(). Anything that would
land outside the root raises AccessError; callers never touch the filesystem
directly.
"""

from __future__ import annotations

import difflib
import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

_log = logging.getLogger(__name__)

VCS_METADATA_DIRS = frozenset({".git", ".hg", ".svn"})

DEFAULT_FILENAME = "main"
MAX_NAME_TOKENS = 3

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "of", "to", "for", "in", "on", "at", "by",
    "with", "from", "into", "that", "this", "these", "those", "it", "its", "is", "are",
    "be", "was", "i", "me", "my", "we", "our", "you", "your", "please", "can", "could",
    "would", "should", "will", "want", "need", "let", "lets", "just", "some", "any",
    "make", "create", "write", "build", "generate", "add", "new", "simple", "small",
    "basic", "quick", "little", "file", "script", "program", "code", "app", "ruby",
    "python", "say", "show", "print", "display", "output", "run", "how", "what",
    "which", "do", "does", "so", "then", "also", "using", "use", "called", "named",
})

# Earlier entries win when a task mentions several of them.
PRIORITY_KEYWORDS = (
    "hello", "world", "fizzbuzz", "fibonacci", "factorial", "prime", "primes",
    "calculator", "converter", "temperature", "guess", "game", "quiz", "todo",
    "timer", "counter", "clock", "weather", "server", "client", "api", "http",
    "scraper", "parser", "csv", "json", "sort", "search", "palindrome", "reverse",
    "password", "random", "dice", "bank", "account", "inventory", "greeting",
    "test", "tests", "utils", "helper",
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class AccessError(ValueError):
    """Raised when a path would resolve outside the workspace root."""


class NotFoundError(FileNotFoundError):
    """Raised when a read target does not exist inside the workspace."""


class WriteError(OSError):
    """Raised when writing a file inside the workspace fails."""


def _tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def filename_stem(task_text: str) -> str:
    """Derive an underscore-joined file stem from free-form task text."""
    tokens = [t for t in _tokens(task_text) if t not in STOP_WORDS]

    present = set(tokens)
    matched = [k for k in PRIORITY_KEYWORDS if k in present][:MAX_NAME_TOKENS]
    if matched:
        return "_".join(matched)

    leading = [t for t in tokens if not t.isdigit()][:MAX_NAME_TOKENS]
    if leading:
        return "_".join(leading)
    return DEFAULT_FILENAME


class Workspace:
    """Sandboxed view of one project directory."""

    def __init__(self, root: str | Path, script_extension: str = ".rb") -> None:
        self.root = Path(root).expanduser().resolve()
        self.script_extension = script_extension

    # ── Containment ──────────────────────────────────────────────────────────

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve a model-supplied path to an absolute path inside the root.

        Raises:
            AccessError: For empty paths, parent-directory components, NUL bytes,
                or anything whose resolved location is outside the root.
        """
        raw = str(path).strip()
        if not raw:
            raise AccessError("Empty path")
        if "\x00" in raw:
            raise AccessError(f"Invalid path: {raw!r}")

        candidate = Path(raw)
        if ".." in candidate.parts or ".." in PurePosixPath(raw.replace("\\", "/")).parts:
            raise AccessError(f"Path '{raw}' uses parent-directory traversal.")

        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        try:
            resolved.relative_to(self.root)
        except ValueError:
            raise AccessError(f"Path '{raw}' resolves outside the workspace.") from None
        return resolved

    def relative(self, path: str | Path) -> str:
        """Return the POSIX path of a workspace file relative to the root."""
        return self.resolve_path(path).relative_to(self.root).as_posix()

    # ── Reading ──────────────────────────────────────────────────────────────

    def exists(self, path: str | Path) -> bool:
        return self.resolve_path(path).exists()

    def read(self, path: str | Path) -> str:
        """Read a text file.

        Raises:
            AccessError: If the path escapes the workspace.
            NotFoundError: If the path is missing or not a regular file.
        """
        full_path = self.resolve_path(path)
        if not full_path.is_file():
            raise NotFoundError(f"File does not exist: {path}")
        return full_path.read_text(encoding="utf-8", errors="replace")

    def diff(self, path: str | Path, new_content: str) -> str:
        """Unified diff between the current file (or nothing) and new_content."""
        full_path = self.resolve_path(path)
        existed = full_path.is_file()
        old_content = full_path.read_text(encoding="utf-8", errors="replace") if existed else ""
        label = full_path.relative_to(self.root).as_posix()
        return "".join(difflib.unified_diff(
            old_content.splitlines(keepends=True),
            _with_newline(new_content).splitlines(keepends=True),
            fromfile=f"a/{label}" if existed else "/dev/null",
            tofile=f"b/{label}",
            n=3,
        ))

    def list_tree(self, max_depth: int = 3) -> list[str]:
        """List files and directories, sorted, skipping VCS metadata.

        A path's depth is its number of separators, so max_depth=0 lists only
        the top level.
        """
        entries: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in VCS_METADATA_DIRS]
            rel_dir = Path(dirpath).relative_to(self.root)
            depth = len(rel_dir.parts)
            for name in dirnames + filenames:
                entries.append((rel_dir / name).as_posix())
            if depth >= max_depth:
                dirnames[:] = []
        return sorted(entries)

    def tree(self, max_depth: int = 3) -> str:
        entries = self.list_tree(max_depth)
        return "\n".join(entries) if entries else "(empty)"

    # ── Writing ──────────────────────────────────────────────────────────────

    def write(self, path: str | Path, content: str) -> Path:
        """Write content, creating parent directories. Does not ask for approval.

        Raises:
            AccessError: If the path escapes the workspace.
            WriteError: If the filesystem refuses the write.
        """
        full_path = self.resolve_path(path)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(_with_newline(content), encoding="utf-8")
        except OSError as exc:
            _log.warning("Write to %s failed: %s", full_path, exc)
            raise WriteError(f"Could not write {path}: {exc}") from exc
        return full_path

    # ── Filename synthesis ───────────────────────────────────────────────────

    def suggest_filename(
        self,
        task_text: str,
        directory: str = "",
        taken: Iterable[str] = (),
        extension: str | None = None,
    ) -> str:
        """Suggest a new, unused workspace-relative filename for a task.

        Collisions with files on disk or names in ``taken`` get a numeric
        suffix: ``foo.rb``, ``foo_2.rb``, ``foo_3.rb``...
        """
        ext = extension if extension is not None else self.script_extension
        name = f"{filename_stem(task_text)}{ext}"
        if directory not in ("", "."):
            name = (PurePosixPath(directory) / name).as_posix()
        return self.unique_name(name, taken)

    def unique_name(self, path: str, taken: Iterable[str] = ()) -> str:
        """Return path, or the first free ``stem_N`` variant of it."""
        used = set(taken)
        base = PurePosixPath(path)
        counter = 1
        candidate = base.as_posix()
        while candidate in used or self.exists(candidate):
            counter += 1
            candidate = base.with_name(f"{base.stem}_{counter}{base.suffix}").as_posix()
        return candidate


def _with_newline(content: str) -> str:
    return content if content.endswith("\n") or not content else content + "\n"

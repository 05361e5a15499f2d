"""Structured response protocol - labeled sections in model output.

The model answers in plain text using uppercase labels at the start of a line::

    PLAN:
    Short reasoning

    FILES_TO_READ:
    lib/app.rb

    FILE: hello_world.rb
    ```ruby
    puts "Hello, world!"
    ```

    COMMANDS:
    git status

    RESPONSE:
    What to tell the user

A label's body runs to the next label or the end of the text. Lines inside a
fenced block never count as labels. Malformed sections are dropped and noted in
``Intent.warnings``; parsing never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

_log = logging.getLogger(__name__)

PLAN = "PLAN"
FILES_TO_READ = "FILES_TO_READ"
FILE = "FILE"
COMMANDS = "COMMANDS"
RESPONSE = "RESPONSE"

_LABEL_RE = re.compile(r"^(PLAN|FILES_TO_READ|FILE|COMMANDS|RESPONSE):[ \t]*(.*)$")
_FENCE_RE = re.compile(r"`{3,}")
_BULLET_RE = re.compile(r"^[-*]\s+")
_PLACEHOLDERS = {"none", "(none)", "n/a", "-"}


@dataclass(frozen=True)
class FileWriteRequest:
    """A file the model wants written, path not yet validated."""

    path: str
    content: str


@dataclass
class Intent:
    """Parsed form of one model response. ``None`` means the section was absent."""

    plan: str | None = None
    read_requests: list[str] | None = None
    write_requests: list[FileWriteRequest] | None = None
    commands: list[str] | None = None
    response: str | None = None
    warnings: list[str] = field(default_factory=list, compare=False)

    @property
    def has_actions(self) -> bool:
        """True when the model asked for any read, write or command."""
        return bool(self.read_requests or self.write_requests or self.commands)

    @property
    def is_empty(self) -> bool:
        """True when no section at all was recognized."""
        return not (self.plan or self.has_actions or self.response)


@dataclass
class _Section:
    label: str
    argument: str
    lines: list[str] = field(default_factory=list)
    # (open_index, close_index) into lines for the first complete fence
    fence: tuple[int, int] | None = None
    unterminated: bool = False


def _fence_width(line: str) -> int:
    """Length of the backtick run opening a fence line, 0 when it is not one."""
    match = _FENCE_RE.match(line.strip())
    return len(match.group(0)) if match else 0


def _is_bare_fence(line: str) -> bool:
    return _FENCE_RE.fullmatch(line.strip()) is not None


def _matching_close(lines: list[str], start: int, width: int) -> int | None:
    """Index of the line closing the fence opened at ``lines[start]``.

    Tagged fences inside the block open a nested level that the next bare fence
    closes. At depth zero a bare fence at least ``width`` backticks long closes
    the block, and a shorter one opens a nested level. A FILE label before the
    close means the fence was never closed.
    """
    depth = 0
    for index in range(start + 1, len(lines)):
        line = lines[index]
        match = _LABEL_RE.match(line.rstrip())
        if match and match.group(1) == FILE:
            return None
        if _is_bare_fence(line):
            if depth:
                depth -= 1
            elif _fence_width(line) >= width:
                return index
            else:
                depth += 1
        elif _fence_width(line):
            depth += 1
    return None


def _scan(text: str) -> list[_Section]:
    lines = text.splitlines()
    sections: list[_Section] = []
    current: _Section | None = None
    open_at = 0
    close_at: int | None = None

    for index, line in enumerate(lines):
        if close_at is not None:
            if current is not None:
                if index == close_at and current.fence is None:
                    current.fence = (open_at, len(current.lines))
                current.lines.append(line)
            if index == close_at:
                close_at = None
            continue

        match = _LABEL_RE.match(line.rstrip())
        if match:
            current = _Section(label=match.group(1), argument=match.group(2).strip())
            sections.append(current)
            continue

        width = _fence_width(line)
        if width:
            close_at = _matching_close(lines, index, width)
            if close_at is not None:
                open_at = len(current.lines) if current is not None else 0
            elif current is not None and current.label == FILE and current.fence is None:
                current.unterminated = True

        if current is not None:
            current.lines.append(line)
    return sections


def _body(section: _Section) -> str | None:
    parts = [section.argument] if section.argument else []
    parts.extend(section.lines)
    body = "\n".join(parts).strip()
    return body or None


def _items(section: _Section) -> list[str] | None:
    items = []
    for raw in [section.argument, *section.lines]:
        item = _BULLET_RE.sub("", raw.strip()).strip()
        if item and item.lower() not in _PLACEHOLDERS:
            items.append(item)
    return items or None


def _file_block(section: _Section, warnings: list[str]) -> FileWriteRequest | None:
    path = section.argument
    if section.fence is None:
        label = path or "(no path)"
        if section.unterminated:
            warnings.append(f"Dropped FILE block for {label}: unterminated code fence")
        else:
            warnings.append(f"Dropped FILE block for {label}: no code fence")
        return None

    start, end = section.fence
    if not path:
        for line in section.lines[:start]:
            if line.strip():
                path = line.strip()
                break
    if not path:
        warnings.append("Dropped FILE block: no path given")
        return None

    content = "\n".join(section.lines[start + 1:end]).rstrip()
    return FileWriteRequest(path=path.strip("`"), content=content)


def parse_response(text: str) -> Intent:
    """Parse raw model text into an Intent.

    Missing sections become ``None``. A repeated PLAN/FILES_TO_READ/COMMANDS/RESPONSE
    label keeps its first occurrence; FILE sections are collected in order.
    """
    intent = Intent()
    if not text:
        return intent

    writes: list[FileWriteRequest] = []
    seen: set[str] = set()

    for section in _scan(text):
        if section.label == FILE:
            request = _file_block(section, intent.warnings)
            if request is not None:
                writes.append(request)
            continue
        if section.label in seen:
            intent.warnings.append(f"Ignored repeated {section.label} section")
            continue
        seen.add(section.label)
        if section.label == PLAN:
            intent.plan = _body(section)
        elif section.label == RESPONSE:
            intent.response = _body(section)
        elif section.label == FILES_TO_READ:
            intent.read_requests = _items(section)
        elif section.label == COMMANDS:
            intent.commands = _items(section)

    intent.write_requests = writes or None
    for warning in intent.warnings:
        _log.debug("Response parse: %s", warning)
    return intent


def _fence_for(content: str) -> str:
    widths = [_fence_width(line) for line in content.splitlines()]
    return "`" * max(3, max(widths, default=0) + 1)


def format_intent(intent: Intent) -> str:
    """Render an Intent in the wire format understood by parse_response()."""
    blocks: list[str] = []
    if intent.plan:
        blocks.append(f"{PLAN}:\n{intent.plan}")
    if intent.read_requests:
        blocks.append(f"{FILES_TO_READ}:\n" + "\n".join(intent.read_requests))
    for request in intent.write_requests or []:
        fence = _fence_for(request.content)
        blocks.append(f"{FILE}: {request.path}\n{fence}\n{request.content}\n{fence}")
    if intent.commands:
        blocks.append(f"{COMMANDS}:\n" + "\n".join(intent.commands))
    if intent.response:
        blocks.append(f"{RESPONSE}:\n{intent.response}")
    return "\n\n".join(blocks) + "\n"

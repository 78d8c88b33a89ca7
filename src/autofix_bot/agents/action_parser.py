"""Action protocol parser: turns generated text into file edits.

The reply is read line by line. Four token kinds matter: an
``EXPLANATION:`` header, a ``FILE: <path>`` marker, a fence opener
(```` ```lang ````) and a fence closer. Each grammar below is a small
function over the line list that shares one fenced-block reader, so the
fallback grammars can be tested on their own.

Parsing is a pure function of the text and never raises.
"""

import re
from typing import Callable

from autofix_bot.agents.exceptions import ParseEmpty
from autofix_bot.models import ActionDirective, FileEdit

FILE_MARKER_RE = re.compile(r"FILE:\s*([^`\n]+?)\s*$", re.IGNORECASE)
FILE_MARKER_ANYWHERE_RE = re.compile(r"FILE:", re.IGNORECASE)
EXPLANATION_RE = re.compile(r"EXPLANATION:", re.IGNORECASE)
FENCE_OPEN_RE = re.compile(r"^\s*```[\w+#.-]*\s*$")
FENCE_CLOSE = "```"
PATH_PATTERN = r"[A-Za-z0-9_\-/.]+\.[A-Za-z0-9]+"
BARE_PATH_RE = re.compile(rf"^\s*[`*]*({PATH_PATTERN})[`*]*:?\s*$")
IMPERATIVE_PATH_RE = re.compile(
    r"\b(?:create|update|write|make)\s+(?:a\s+)?(?:new\s+)?(?:file\s+)?"
    rf"(?:called\s+|named\s+)?[\"'`]?({PATH_PATTERN})[\"'`]?\s*:?\s*$",
    re.IGNORECASE,
)

# (path, content) pairs before validation
RawEdit = tuple[str, str]
Grammar = Callable[[list[str]], list[RawEdit]]


def _read_fenced_block(lines: list[str], start: int) -> tuple[str, int] | None:
    """Read a fenced block whose opener is at or after ``start``.

    Blank lines before the opener are skipped. Returns (content, index of the
    line after the closer), or None when no well-formed block starts there.
    """
    idx = start
    while idx < len(lines) and not lines[idx].strip():
        idx += 1
    if idx >= len(lines) or not FENCE_OPEN_RE.match(lines[idx]):
        return None

    body: list[str] = []
    idx += 1
    while idx < len(lines):
        line = lines[idx]
        close_at = line.find(FENCE_CLOSE)
        if close_at != -1:
            if line[:close_at].strip():
                body.append(line[:close_at])
            return "\n".join(body), idx + 1
        body.append(line)
        idx += 1
    return None  # Unterminated fence


def _scan(lines: list[str], header: Callable[[str], str | None]) -> list[RawEdit]:
    """Collect every `header line` + fenced block pair, in order."""
    edits: list[RawEdit] = []
    idx = 0
    while idx < len(lines):
        path = header(lines[idx])
        if path is not None:
            block = _read_fenced_block(lines, idx + 1)
            if block is not None:
                content, idx = block
                edits.append((path, content))
                continue
        idx += 1
    return edits


def _file_marker(line: str) -> str | None:
    match = FILE_MARKER_RE.search(line)
    return match.group(1) if match else None


def _bare_path(line: str) -> str | None:
    match = BARE_PATH_RE.match(line)
    return match.group(1) if match else None


def _imperative_path(line: str) -> str | None:
    match = IMPERATIVE_PATH_RE.search(line)
    return match.group(1) if match else None


def parse_file_markers(lines: list[str]) -> list[RawEdit]:
    """Primary grammar: ``FILE: path`` followed by a fenced block."""
    return _scan(lines, _file_marker)


def parse_bare_paths(lines: list[str]) -> list[RawEdit]:
    """Fallback: a line holding only ``name.ext`` followed by a fenced block."""
    return _scan(lines, _bare_path)


def parse_imperative_paths(lines: list[str]) -> list[RawEdit]:
    """Fallback: ``create a file called 'name.ext':`` followed by a fenced block."""
    return _scan(lines, _imperative_path)


FALLBACK_GRAMMARS: tuple[Grammar, ...] = (parse_bare_paths, parse_imperative_paths)


def parse_explanation(lines: list[str]) -> str:
    """Text after ``EXPLANATION:`` up to the first ``FILE:`` marker."""
    collected: list[str] = []
    in_section = False
    for line in lines:
        if not in_section:
            header = EXPLANATION_RE.search(line)
            if header is None:
                continue
            in_section = True
            line = line[header.end():]
        marker = FILE_MARKER_ANYWHERE_RE.search(line)
        if marker is not None:
            collected.append(line[: marker.start()])
            break
        collected.append(line)
    return "\n".join(collected).strip()


def _to_edits(raw_edits: list[RawEdit]) -> tuple[FileEdit, ...]:
    edits: list[FileEdit] = []
    for raw_path, raw_content in raw_edits:
        path = raw_path.strip().strip("\"'").strip()
        content = raw_content.strip()
        if not path or not content:
            continue
        edits.append(FileEdit(path=path, content=content))
    return tuple(edits)


def parse_action_directive(text: str, allow_fallbacks: bool = True) -> ActionDirective:
    """Parse a generated reply into an ActionDirective.

    Args:
        text: Raw completion text.
        allow_fallbacks: Try the bare-path and imperative grammars when the
            ``FILE:`` grammar finds nothing.

    Returns:
        ActionDirective; ``file_edits`` is empty when nothing was found.
    """
    if not text:
        return ActionDirective()

    lines = text.replace("\r\n", "\n").split("\n")
    explanation = parse_explanation(lines)
    edits = _to_edits(parse_file_markers(lines))

    if not edits and allow_fallbacks:
        for grammar in FALLBACK_GRAMMARS:
            edits = _to_edits(grammar(lines))
            if edits:
                break

    return ActionDirective(explanation=explanation, file_edits=edits)


class ActionProtocolParser:
    """Parser bound to one fallback policy."""

    def __init__(self, allow_fallbacks: bool = True) -> None:
        self.allow_fallbacks = allow_fallbacks

    def parse(self, text: str) -> ActionDirective:
        return parse_action_directive(text, allow_fallbacks=self.allow_fallbacks)

    def parse_required(self, text: str) -> ActionDirective:
        """Parse, raising ParseEmpty when the reply holds no file edit."""
        directive = self.parse(text)
        if not directive.has_edits:
            raise ParseEmpty("No FILE blocks found in completion text")
        return directive

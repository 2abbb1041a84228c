"""
packager.instructions
---------------------
Turns the raw bytes of a packaging descriptor (Dockerfile syntax) into
instruction records, and each record into a typed instruction.

Tokenizing is left to ``dockerfile-parse``: it handles comments, line
continuations and parser directives. This module only gives meaning to the
arguments of the few instructions the packager cares about (FROM, COPY,
LABEL) and rejects keywords that are not Dockerfile instructions at all.
"""

from __future__ import annotations

import io
import json
import logging
import re
import shlex
from dataclasses import dataclass, field
from typing import Union

from dockerfile_parse import DockerfileParser

from .errors import InstructionParseError

logger = logging.getLogger(__name__)

# Instructions accepted by the Dockerfile grammar but ignored by the packager
OTHER_INSTRUCTIONS = frozenset({
    "ADD", "ARG", "CMD", "ENTRYPOINT", "ENV", "EXPOSE", "HEALTHCHECK",
    "MAINTAINER", "ONBUILD", "RUN", "SHELL", "STOPSIGNAL", "USER", "VOLUME",
    "WORKDIR",
})

_FLAG_RE = re.compile(r"--([A-Za-z][\w-]*)(?:=(\S*))?\s*")


@dataclass(frozen=True)
class RawInstruction:
    """One instruction as found in the descriptor, arguments not yet interpreted."""
    name: str
    value: str
    line: int | None = None


@dataclass(frozen=True)
class FromInstruction:
    base: str
    stage_name: str | None = None
    line: int | None = None


@dataclass(frozen=True)
class CopyInstruction:
    sources: tuple[str, ...]
    dest: str
    flags: dict[str, str] = field(default_factory=dict)
    line: int | None = None


@dataclass(frozen=True)
class LabelInstruction:
    # quote characters are kept, stripping is up to the extractor
    labels: tuple[tuple[str, str], ...]
    line: int | None = None


@dataclass(frozen=True)
class OtherInstruction:
    name: str
    value: str = ""
    line: int | None = None


Instruction = Union[FromInstruction, CopyInstruction, LabelInstruction, OtherInstruction]


def parse_descriptor(data: bytes) -> list[RawInstruction]:
    """Split descriptor bytes into raw instruction records, in file order."""
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InstructionParseError(f"descriptor is not valid UTF-8: {exc}") from exc

    # No variable expansion: LABEL values must reach the extractor with their quotes
    parser = DockerfileParser(fileobj=io.BytesIO(data), env_replace=False)
    records = []
    for entry in parser.structure:
        name = entry["instruction"].upper()
        if name == "COMMENT":
            continue
        records.append(RawInstruction(name, (entry.get("value") or "").strip(), entry["startline"] + 1))
    logger.debug(f"Parsed {len(records)} instructions")
    return records


def parse_instruction(raw: RawInstruction) -> Instruction:
    """Give meaning to the arguments of one raw instruction.

    Raises InstructionParseError for unknown keywords and malformed arguments.
    """
    if raw.name == "FROM":
        return _parse_from(raw)
    if raw.name == "COPY":
        return _parse_copy(raw)
    if raw.name == "LABEL":
        return _parse_label(raw)
    if raw.name in OTHER_INSTRUCTIONS:
        return OtherInstruction(raw.name, raw.value, raw.line)
    raise InstructionParseError(f"unknown instruction: {raw.name}", raw.line)


def _split_flags(text: str) -> tuple[dict[str, str], str]:
    flags: dict[str, str] = {}
    match = _FLAG_RE.match(text)
    while match:
        flags[match.group(1)] = match.group(2) or ""
        text = text[match.end():]
        match = _FLAG_RE.match(text)
    return flags, text


def _shell_words(raw: RawInstruction, text: str) -> list[str]:
    try:
        return shlex.split(text)
    except ValueError as exc:
        raise InstructionParseError(f"{raw.name}: {exc}", raw.line) from exc


def _parse_from(raw: RawInstruction) -> FromInstruction:
    _, text = _split_flags(raw.value)
    words = _shell_words(raw, text)
    if len(words) == 1:
        return FromInstruction(words[0], None, raw.line)
    if len(words) == 3 and words[1].upper() == "AS":
        return FromInstruction(words[0], words[2], raw.line)
    if not words:
        raise InstructionParseError("FROM requires a base reference", raw.line)
    raise InstructionParseError(f"FROM: unexpected arguments {' '.join(words[1:])!r}", raw.line)


def _parse_copy(raw: RawInstruction) -> CopyInstruction:
    flags, text = _split_flags(raw.value)
    # JSON form: COPY ["src", ..., "dest"]
    if text.startswith("["):
        try:
            words = json.loads(text)
        except ValueError as exc:
            raise InstructionParseError(f"COPY: invalid JSON array: {exc}", raw.line) from exc
        if not isinstance(words, list) or not all(isinstance(p, str) for p in words):
            raise InstructionParseError("COPY: JSON form must be an array of strings", raw.line)
    else:
        words = _shell_words(raw, text)
    if len(words) < 2:
        raise InstructionParseError("COPY requires at least one source and a destination", raw.line)
    if "from" in flags:
        logger.warning(f"line {raw.line}: COPY --from={flags['from']} is not supported, copying from the build context")
    return CopyInstruction(tuple(words[:-1]), words[-1], flags, raw.line)


def _parse_label(raw: RawInstruction) -> LabelInstruction:
    words = split_quoted_words(raw.value)
    if not words:
        raise InstructionParseError("LABEL requires at least one key=value pair", raw.line)
    # legacy form: LABEL key value with spaces
    if "=" not in words[0]:
        if len(words) < 2:
            raise InstructionParseError(f"LABEL {words[0]!r} has no value", raw.line)
        return LabelInstruction(((words[0], " ".join(words[1:])),), raw.line)
    labels = []
    for word in words:
        key, sep, value = word.partition("=")
        if not sep or not key:
            raise InstructionParseError(f"LABEL: expected key=value, got {word!r}", raw.line)
        labels.append((key, value))
    return LabelInstruction(tuple(labels), raw.line)


def split_quoted_words(text: str) -> list[str]:
    """Split on whitespace that is outside double quotes, keeping the quotes."""
    words = []
    current = []
    quoted = False
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char == '"':
            current.append(char)
            quoted = not quoted
        elif char.isspace() and not quoted:
            if current:
                words.append("".join(current))
                current = []
        else:
            current.append(char)
    if current:
        words.append("".join(current))
    return words


__all__ = [
    "CopyInstruction",
    "FromInstruction",
    "Instruction",
    "LabelInstruction",
    "OtherInstruction",
    "RawInstruction",
    "parse_descriptor",
    "parse_instruction",
    "split_quoted_words",
]

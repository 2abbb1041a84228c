"""
packager.extractor
------------------
Folds the instructions of a descriptor into a PackageDescriptor.

Instructions are evaluated in file order. FROM sets the base (once), COPY
appends a copy entry, LABEL adds annotations. Other Dockerfile instructions
are logged and dropped. The first malformed instruction aborts extraction.
"""

from __future__ import annotations

import logging
from typing import Iterable, Union

from .errors import InstructionParseError
from .instructions import (
    CopyInstruction,
    FromInstruction,
    Instruction,
    LabelInstruction,
    OtherInstruction,
    RawInstruction,
    parse_descriptor,
    parse_instruction,
)
from .models import PackageDescriptor

logger = logging.getLogger(__name__)


def strip_quotes(text: str) -> str:
    """Remove one pair of surrounding double quotes, if both are there."""
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text


def extract(instructions: Iterable[Union[RawInstruction, Instruction]]) -> PackageDescriptor:
    descriptor = PackageDescriptor()
    for item in instructions:
        cmd = parse_instruction(item) if isinstance(item, RawInstruction) else item

        if isinstance(cmd, FromInstruction):
            descriptor.set_base(cmd.base)
            logger.debug(f"Build base: {cmd.base}")
        elif isinstance(cmd, CopyInstruction):
            if len(cmd.sources) > 1:
                logger.warning(f"line {cmd.line}: COPY with several sources, only {cmd.sources[0]!r} is used")
            descriptor.add_copy(cmd.sources[0], cmd.dest)
        elif isinstance(cmd, LabelInstruction):
            for key, value in cmd.labels:
                descriptor.annotate(strip_quotes(key), strip_quotes(value))
        elif isinstance(cmd, OtherInstruction):
            logger.warning(f"line {cmd.line}: Unsupported instruction {cmd.name} ignored")
        else:
            raise InstructionParseError(f"{cmd!r} is not an instruction")
    return descriptor


def extract_bytes(data: bytes) -> PackageDescriptor:
    """Parse descriptor bytes and extract the package descriptor."""
    return extract(parse_descriptor(data))


__all__ = ["extract", "extract_bytes", "strip_quotes"]

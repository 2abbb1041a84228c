"""Descriptor model produced by the extractor and consumed by the compiler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from .errors import MultiStageUnsupported


class CopyEntry(NamedTuple):
    source: str
    dest: str


@dataclass
class PackageDescriptor:
    """Normalized form of a packaging descriptor.

    ``copies`` keeps the order of the COPY instructions, which is the order of
    the file operations in the compiled graph.
    """

    base: str = ""
    copies: list[CopyEntry] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def has_base(self) -> bool:
        return bool(self.base)

    def set_base(self, ref: str) -> None:
        if self.has_base:
            raise MultiStageUnsupported()
        self.base = ref

    def add_copy(self, source: str, dest: str) -> None:
        self.copies.append(CopyEntry(source, dest))

    def annotate(self, key: str, value: str) -> None:
        self.annotations[key] = value


__all__ = ["CopyEntry", "PackageDescriptor"]

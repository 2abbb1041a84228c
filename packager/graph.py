"""Pydantic models of the build graph handed to the build engine."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Platform(BaseModel):
    model_config = ConfigDict(frozen=True)

    os: str
    architecture: str

    def __str__(self) -> str:
        return f"{self.os}/{self.architecture}"


class ScratchSource(BaseModel):
    """Empty root filesystem."""
    op: Literal["scratch"] = "scratch"


class ImageSource(BaseModel):
    """Root filesystem pulled from a registry.

    ``platform`` overrides the engine's default platform resolution.
    """
    op: Literal["image"] = "image"
    ref: str = Field(..., min_length=1)
    platform: Platform | None = None


class LocalSource(BaseModel):
    """Files of a build context sent by the caller, under a named handle."""
    op: Literal["local"] = "local"
    name: str = Field(..., min_length=1)
    include_patterns: list[str] = Field(default_factory=list)


class CopyFile(BaseModel):
    op: Literal["copy"] = "copy"
    source: LocalSource
    src: str
    dest: str
    create_dest_path: bool = True


class MakeFile(BaseModel):
    op: Literal["mkfile"] = "mkfile"
    path: str
    mode: int = 0o644
    data: str


Operation = Annotated[
    Union[ScratchSource, ImageSource, LocalSource, CopyFile, MakeFile],
    Field(discriminator="op"),
]

ROOT_OPS = ("scratch", "image", "local")
FILE_OPS = ("copy", "mkfile")


class Definition(BaseModel):
    """Ordered chain of operations: one root, then file operations applied to it."""

    platform: Platform
    ops: list[Operation] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_chain(self) -> Definition:
        if self.ops[0].op not in ROOT_OPS:
            raise ValueError(f"first operation must be one of {ROOT_OPS}, got {self.ops[0].op!r}")
        for op in self.ops[1:]:
            if op.op not in FILE_OPS:
                raise ValueError(f"operation {op.op!r} cannot be applied to an existing state")
        return self

    @property
    def root(self) -> ScratchSource | ImageSource | LocalSource:
        return self.ops[0]  # type: ignore[return-value]

    @property
    def file_ops(self) -> list[CopyFile | MakeFile]:
        return self.ops[1:]  # type: ignore[return-value]

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(indent=indent)

    @classmethod
    def from_json(cls, raw: str | bytes) -> Definition:
        return cls.model_validate_json(raw)


__all__ = [
    "CopyFile",
    "Definition",
    "ImageSource",
    "LocalSource",
    "MakeFile",
    "Operation",
    "Platform",
    "ScratchSource",
]

"""
packager.compiler
-----------------
Compiles a PackageDescriptor into a build graph Definition.

The graph is a chain: the root selected by the base resolution policy, one
copy per COPY entry (in descriptor order) from the caller's build context,
and a final write of the urunc metadata file. No I/O happens here.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Mapping

from .base import resolve_base
from .config import PunConfig
from .errors import CompileError, MetadataEncodingError
from .graph import CopyFile, Definition, LocalSource, MakeFile
from .models import PackageDescriptor

logger = logging.getLogger(__name__)


def encode_annotations(annotations: Mapping[str, str]) -> bytes:
    """Marshal the annotations as the metadata payload read by urunc.

    Values are base64 encoded, keys are left as they are.
    """
    try:
        encoded = {key: base64.b64encode(value.encode()).decode() for key, value in annotations.items()}
        return json.dumps(encoded, sort_keys=True, separators=(",", ":")).encode()
    except (TypeError, ValueError, AttributeError) as exc:
        raise MetadataEncodingError(f"Failed to marshal urunc annotations: {exc}") from exc


def decode_annotations(payload: bytes | str) -> dict[str, str]:
    """Inverse of encode_annotations."""
    return {key: base64.b64decode(value).decode() for key, value in json.loads(payload).items()}


def compile_descriptor(descriptor: PackageDescriptor, config: PunConfig | None = None) -> Definition:
    config = config or PunConfig()
    if not descriptor.has_base:
        raise CompileError("Build base has not been set")

    payload = encode_annotations(descriptor.annotations)

    try:
        selection = resolve_base(descriptor.base, config.catalog_prefix, config.catalog_platform)
    except ValueError as exc:
        raise CompileError(str(exc)) from exc
    ops: list = [selection.to_op()]
    logger.debug(f"Base {descriptor.base!r} resolved to {selection!r}")

    context = LocalSource(name=config.context_name)
    for entry in descriptor.copies:
        ops.append(CopyFile(source=context, src=entry.source, dest=entry.dest, create_dest_path=True))

    ops.append(MakeFile(path=config.metadata_path, mode=config.metadata_mode, data=payload.decode()))

    try:
        definition = Definition(platform=config.output_platform, ops=ops)
    except ValueError as exc:
        raise CompileError(f"Invalid build graph: {exc}") from exc
    logger.info(f"Compiled {len(ops)} operations for {config.output_platform}")
    return definition


def context_file_graph(name: str, config: PunConfig | None = None) -> Definition:
    """Graph selecting the single file ``name`` out of the caller's build context."""
    config = config or PunConfig()
    source = LocalSource(name=config.context_name, include_patterns=[name])
    return Definition(platform=config.output_platform, ops=[source])


__all__ = ["compile_descriptor", "context_file_graph", "decode_annotations", "encode_annotations"]

"""
frontend.handler
----------------
One build request in service mode:

    filename option -> fetch descriptor -> extract -> compile -> solve
    -> attach image config and annotations to the result

Nothing outlives a call to build(): each request gets its own descriptor
and graph.
"""

from __future__ import annotations

import json
import logging
from typing import Mapping

from box import Box
from pydantic import BaseModel, Field

from connectors.engine_interface import BuildEngineClient
from frontend.fetch import fetch_context_file
from packager.compiler import compile_descriptor
from packager.config import PunConfig
from packager.errors import EngineError, MissingOption, SolveError
from packager.extractor import extract_bytes
from packager.graph import Definition
from packager.models import PackageDescriptor

logger = logging.getLogger(__name__)

FILENAME_OPTION = "filename"
# urunc annotation naming the unikernel binary inside the image
BINARY_ANNOTATION = "com.urunc.unikernel.binary"
IMAGE_CONFIG_KEY = "containerimage.config"
MANIFEST_ANNOTATION_PREFIX = "annotation-manifest."


class ImageConfig(Box):
    """OCI image configuration attached to the build result (dot-access dict)."""


class BuildResult(BaseModel):
    ref: str
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def image_config(self) -> ImageConfig:
        return ImageConfig(json.loads(self.metadata[IMAGE_CONFIG_KEY]))

    @property
    def annotations(self) -> dict[str, str]:
        return {
            key[len(MANIFEST_ANNOTATION_PREFIX):]: value
            for key, value in self.metadata.items()
            if key.startswith(MANIFEST_ANNOTATION_PREFIX)
        }


def descriptor_to_graph(data: bytes, config: PunConfig) -> tuple[PackageDescriptor, Definition]:
    """Extract and compile descriptor bytes. Shared by service and standalone mode."""
    descriptor = extract_bytes(data)
    return descriptor, compile_descriptor(descriptor, config)


def entrypoint(descriptor: PackageDescriptor) -> list[str]:
    if BINARY_ANNOTATION in descriptor.annotations:
        return [descriptor.annotations[BINARY_ANNOTATION]]
    if descriptor.copies:
        return [descriptor.copies[0].dest]
    return []


def image_config(descriptor: PackageDescriptor, config: PunConfig) -> ImageConfig:
    return ImageConfig({
        "architecture": config.output_platform.architecture,
        "os": config.output_platform.os,
        "config": {
            "WorkingDir": config.working_dir,
            "Entrypoint": entrypoint(descriptor),
            "Labels": dict(descriptor.annotations),
        },
        "rootfs": {"type": "layers", "diff_ids": []},
    })


def build(options: Mapping[str, str], client: BuildEngineClient, config: PunConfig | None = None) -> BuildResult:
    config = config or PunConfig()
    filename = options.get(FILENAME_OPTION)
    if not filename:
        raise MissingOption(FILENAME_OPTION)

    data = fetch_context_file(client, filename)
    descriptor, definition = descriptor_to_graph(data, config)

    try:
        solved = client.solve(definition)
    except EngineError as e:
        raise SolveError(e) from e

    metadata = {IMAGE_CONFIG_KEY: json.dumps(image_config(descriptor, config).to_dict(), sort_keys=True)}
    for key, value in descriptor.annotations.items():
        metadata[MANIFEST_ANNOTATION_PREFIX + key] = value
    logger.info(f"Built {filename} into {solved.ref} with {len(descriptor.annotations)} annotations")
    return BuildResult(ref=solved.ref, metadata=metadata)

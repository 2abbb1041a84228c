"""
Base resolution policy.

A base reference is classified once into one of three selections, and each
selection knows which root operation it becomes in the build graph:

    EmptyRoot     - "scratch", nothing to fetch
    CatalogImage  - an image of the unikernel catalog, pulled with the
                    catalog's platform instead of the host's
    GenericImage  - any other image, default platform resolution
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .graph import ImageSource, Platform, ScratchSource

SCRATCH = "scratch"
CATALOG_PREFIX = "unikraft.org/"
# The catalog publishes its images under this platform, whatever the host is
CATALOG_PLATFORM = Platform(os="qemu", architecture="amd64")


@dataclass(frozen=True)
class EmptyRoot:
    def to_op(self) -> ScratchSource:
        return ScratchSource()


@dataclass(frozen=True)
class CatalogImage:
    ref: str
    platform: Platform = CATALOG_PLATFORM

    def to_op(self) -> ImageSource:
        return ImageSource(ref=self.ref, platform=self.platform)


@dataclass(frozen=True)
class GenericImage:
    ref: str

    def to_op(self) -> ImageSource:
        return ImageSource(ref=self.ref)


BaseSelection = Union[EmptyRoot, CatalogImage, GenericImage]


def resolve_base(ref: str, catalog_prefix: str = CATALOG_PREFIX,
                 catalog_platform: Platform = CATALOG_PLATFORM) -> BaseSelection:
    """Classify a base reference. Pure, no I/O."""
    if not ref:
        raise ValueError("Empty base reference")
    if ref == SCRATCH:
        return EmptyRoot()
    if ref.startswith(catalog_prefix):
        return CatalogImage(ref, catalog_platform)
    return GenericImage(ref)


__all__ = [
    "BaseSelection",
    "CATALOG_PLATFORM",
    "CATALOG_PREFIX",
    "CatalogImage",
    "EmptyRoot",
    "GenericImage",
    "resolve_base",
]

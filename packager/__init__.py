"""Descriptor parsing, extraction and compilation to a build graph."""

from .base import CatalogImage, EmptyRoot, GenericImage, resolve_base
from .compiler import compile_descriptor, context_file_graph, encode_annotations
from .config import PunConfig, load_config
from .extractor import extract, extract_bytes
from .graph import Definition, Platform
from .models import CopyEntry, PackageDescriptor

__all__ = [
    "CatalogImage",
    "CopyEntry",
    "Definition",
    "EmptyRoot",
    "GenericImage",
    "PackageDescriptor",
    "Platform",
    "PunConfig",
    "compile_descriptor",
    "context_file_graph",
    "encode_annotations",
    "extract",
    "extract_bytes",
    "load_config",
    "resolve_base",
]

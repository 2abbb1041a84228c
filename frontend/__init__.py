"""Service and standalone entry points of the packager."""

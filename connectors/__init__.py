"""Build engine clients."""

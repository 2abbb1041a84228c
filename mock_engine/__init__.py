"""In-memory build engine for local development and tests."""

"""Logging and console helpers shared by the entry points."""

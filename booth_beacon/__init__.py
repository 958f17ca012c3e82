"""Booth Beacon - ingestion backend for the analog photo booth directory."""

__version__ = "0.1.0"

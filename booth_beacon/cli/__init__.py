"""Command line interface for Booth Beacon."""

"""Core domain types shared across the ingestion pipeline."""

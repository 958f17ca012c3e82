"""External service integrations for Booth Beacon."""

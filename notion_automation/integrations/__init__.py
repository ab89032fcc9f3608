"""Third-party metadata and mapping services."""

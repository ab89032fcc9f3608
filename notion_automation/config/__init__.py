"""Configuration constants and workflow definitions."""

"""Batch annotation pipeline and prompt helpers."""

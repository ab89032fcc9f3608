"""Notion API client, property codecs and readers."""

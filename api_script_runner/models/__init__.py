"""Data models for script definitions, responses and results."""

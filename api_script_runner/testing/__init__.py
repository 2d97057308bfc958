"""Helpers for testing code that drives the runner."""

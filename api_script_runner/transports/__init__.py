"""Transports executing rendered requests."""

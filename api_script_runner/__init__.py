"""Scripted API-exercising engine."""

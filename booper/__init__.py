"""Booper presence server."""

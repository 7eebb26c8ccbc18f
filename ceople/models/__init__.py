"""Pydantic response and request models for the HTTP API."""

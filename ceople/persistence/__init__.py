"""Durable audit records for rooms, participants, messages and feedback."""

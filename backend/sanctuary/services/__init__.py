"""Presence domain services: sessions, rooms, voice and broadcasts.

This package holds the in-memory coordination state and the operations that
mutate it. Socket handlers and HTTP routes translate transport payloads into
these calls, keeping transport concerns separated from membership rules.
"""

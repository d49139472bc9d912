"""Deterministic scenario replay against an in-memory engine."""

"""Arrival countdowns and the optional AI briefing."""

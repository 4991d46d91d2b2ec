"""Extraction pipeline stages: familiarization, coding, generation, review and definition."""

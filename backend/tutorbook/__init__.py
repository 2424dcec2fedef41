"""Scheduling core for a tutoring marketplace."""

"""Sampling strategies, batch execution and online statistics."""

"""Steelix commission and agent-tier engine."""

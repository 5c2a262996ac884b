"""Prompt rendering, response parsing, merging and upstream adapters."""

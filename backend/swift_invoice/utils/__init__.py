"""Shared helpers: error codes, response envelopes and money formatting."""

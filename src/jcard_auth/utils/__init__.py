"""Shared helpers that are not specific to the OAuth protocol."""

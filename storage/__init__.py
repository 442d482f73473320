"""Persistent key-value storage for fragments, groups, mind maps and settings."""

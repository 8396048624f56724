"""Core data structures and constants."""

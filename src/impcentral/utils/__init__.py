"""Configuration and argument validation helpers."""

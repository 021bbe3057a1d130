"""
Utility helpers for Zai CLI.
"""

"""
Core package for Zai CLI.

Holds the effective configuration, the Z.ai API client and chat sessions.
"""

"""Interactive terminal prompts."""

"""Model clients, prompts and response parsing."""

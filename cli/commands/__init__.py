"""Typer commands: translate, prompt, languages."""

"""Core building blocks: settings and exceptions."""

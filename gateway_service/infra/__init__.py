"""Infrastructure adapters: logging and the service broker."""

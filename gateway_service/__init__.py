"""GraphQL gateway composing a schema from independently deployed services."""

__version__ = "0.1.0"

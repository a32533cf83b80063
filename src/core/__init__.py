"""Core infrastructure: configuration, logging, exceptions."""

__all__: list[str] = []

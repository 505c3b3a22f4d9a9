"""Relay RSS, Atom and JSON feeds with the full article text of their items."""

__all__ = [
    "config",
    "emitter",
    "enrichment",
    "extraction",
    "feeds",
    "jsonfeed",
    "models",
    "relay",
    "selection",
]

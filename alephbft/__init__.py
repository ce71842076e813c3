"""Aleph BFT consensus building blocks: encoding, node maps, config, unit creation, ordering and scheduling."""

__version__ = "0.1.0"
"""Portico -- application-server front end on aiohttp."""

__version__ = "0.1.0"

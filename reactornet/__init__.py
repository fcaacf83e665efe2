"""Reactor-style TCP networking with HTTP request parsing, asynchronous logging and RPC."""

__version__ = "0.1.0"
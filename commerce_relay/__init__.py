"""Reliable event delivery and audit capture core for the commerce back office."""

__version__ = "0.1.0"

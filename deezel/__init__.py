"""DIESEL token tools: Runestone encoding and decoding, Sandshrew RPC, block monitoring and a watch-only wallet."""

__version__ = "0.1.0"
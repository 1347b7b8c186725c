"""Unified HOA dues and water billing payment distribution backend."""

__version__ = "0.1.0"

"""Voice Clone API - RVC voice model training and conversion service."""

__version__ = "1.0.0"

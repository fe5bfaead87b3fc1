"""Omni - scripted access to Bitwarden vault items and Epicor cases."""

__version__ = "0.1.0"

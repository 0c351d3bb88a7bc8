"""Volunteer Hub: multi-tenant membership and application workflow service."""

__version__ = "0.1.0"

"""Reporters delivering resolved version information to monitoring backends."""

"""Resolve the commits deployed on eVaka instances and report them to Datadog."""

__version__ = "0.1.0"

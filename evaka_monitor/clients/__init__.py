"""Clients for the remote services the resolver reads from."""

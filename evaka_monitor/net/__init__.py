"""Networking helpers shared by the remote clients and reporters."""

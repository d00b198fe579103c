"""Channels — ways to talk to a running Astra. Only HTTP for now."""

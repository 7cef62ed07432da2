"""Adapters for the external reading and process stores."""

"""Clients for the remote services a pipeline talks to."""

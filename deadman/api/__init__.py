"""DEADMAN HTTP API."""

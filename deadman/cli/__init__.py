"""DEADMAN command line interface."""

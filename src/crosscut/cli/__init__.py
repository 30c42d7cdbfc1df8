"""Crosscut command-line interface."""

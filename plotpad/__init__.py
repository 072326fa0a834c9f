"""Plotpad - interactive Python session with captured output and plots."""

__version__ = "0.1.0"

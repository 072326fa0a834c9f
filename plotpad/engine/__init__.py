"""Plotpad Engine

Core execution engine components:
- loader: One-time engine bring-up (packages, plotting backend)
- executor: Output capture around a single run (stdout/stderr, figures)
- coordinator: Session state machine, one run at a time
"""

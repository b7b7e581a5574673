"""Replanner: a plan-act-respond agent driven by a structured output contract."""

__version__ = "0.1.0"

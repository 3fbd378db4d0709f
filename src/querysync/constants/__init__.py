"""Constant tables shared across querysync."""

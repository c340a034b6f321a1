"""Worked examples built on grammata."""

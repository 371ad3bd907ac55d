"""Concrete implementations of kernel ports."""

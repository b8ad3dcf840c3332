"""Wholesale partner ordering portal: cart, order submission and back-office."""

__version__ = "0.1.0"

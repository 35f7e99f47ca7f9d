"""Utility functions for the billing kernel."""

from billing_kernel.utils.locks import KeyedLock

__all__ = ["KeyedLock"]

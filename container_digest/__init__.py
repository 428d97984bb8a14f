"""Resolve container image digests per architecture"""

__version__ = "0.1.0"

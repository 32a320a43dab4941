"""
Wiki page storage service reachable over an in-process event bus.
"""

__version__ = "0.1.0"

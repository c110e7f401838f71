"""
autows — workspace package manager for multi-repository source trees.
"""

__version__ = "0.1.0"

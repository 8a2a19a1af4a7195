"""
Yume client layer: atomic transaction builders and remote state readers
for the Yume lending order book.
"""

__version__ = "0.3.0"

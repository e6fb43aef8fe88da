"""Coffee Pairing.

Weekly coffee-chat introductions: pick eligible users, pair them while
avoiding recent repeats, store the matches and notify both sides.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

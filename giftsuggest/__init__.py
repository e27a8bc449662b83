"""Gift suggestions backed by real, search-verified products."""

__version__ = "0.1.0"

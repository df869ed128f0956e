"""aisync -- copy shared AI tool rules and config files into tool trees."""

__version__ = "1.0.0"

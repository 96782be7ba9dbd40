"""PlexBuy shopping advisor backend"""

__version__ = "1.0.0"

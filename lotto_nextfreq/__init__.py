"""Historical next-round frequency analysis over lotto draw snapshots."""

__version__ = "1.0.0"

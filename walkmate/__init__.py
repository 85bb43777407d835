"""walkmate - Dog-walking marketplace for owners and walkers."""

__version__ = "0.1.0"

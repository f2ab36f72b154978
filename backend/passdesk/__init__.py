"""PassDesk scheduling, reservation and checkout engine."""

__version__ = "0.1.0"

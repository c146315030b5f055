"""InvTrac - single-user inventory tracker with debounced remote sync."""

__version__ = "0.1.0"

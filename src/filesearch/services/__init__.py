"""Collection management and service wiring."""

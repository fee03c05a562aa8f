"""fanout: concurrent search fan-out with health, rate and cache control."""

__version__ = "0.1.0"

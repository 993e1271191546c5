"""Payment intermediary service backed by Redis, with health-aware routing between two payment processors."""

__version__ = "0.1.1"
"""Real-time Tobii sensor-data distribution bridge."""

__version__ = "1.0"

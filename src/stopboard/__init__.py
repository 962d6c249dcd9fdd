"""Bus stop arrivals board with a live vehicle map overlay."""

__version__ = "0.1.0"

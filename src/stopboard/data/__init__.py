"""Transit data access: API client, records and polling loops."""

from stopboard.data.carris_client import CarrisClient, CarrisClientError
from stopboard.data.models import RawArrival, Stop, Vehicle

__all__ = ["CarrisClient", "CarrisClientError", "RawArrival", "Stop", "Vehicle"]

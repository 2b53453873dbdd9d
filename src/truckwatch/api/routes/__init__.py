"""Route group exports."""

from . import appointments, distances, health, vehicles

__all__ = ["health", "vehicles", "appointments", "distances"]

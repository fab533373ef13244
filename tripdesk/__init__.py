"""Trip planning backend with reusable itinerary and package templates."""

__version__ = "1.0.0"

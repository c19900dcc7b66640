"""Itinerary cascade: extract, resolve and cross-link content entities."""

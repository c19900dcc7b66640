"""Itinerary ideation: generate, filter and shape content candidates."""

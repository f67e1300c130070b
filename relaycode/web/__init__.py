"""FastAPI surface for relaycode."""

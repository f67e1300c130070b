"""relaycode: lifecycle tracking and live status streaming for AI-generated patches."""

__version__ = "1.2.4"

"""Trip-planning collaboration API authenticated by Telegram launch payloads."""

__version__ = "0.1.0"

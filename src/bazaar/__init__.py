"""Bazaar: enquiry marketplace with an offer negotiation state machine."""

__version__ = "0.1.0"

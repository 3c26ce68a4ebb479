"""pharmeasy-client: session, access control and request polling for the
PharmEasy marketplace client."""

__version__ = "0.1.0"

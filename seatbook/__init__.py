"""Client-side notification layer of the library seat and room booking system."""

__version__ = "1.0.0"

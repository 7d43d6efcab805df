"""Campus operations core: elections and facility bookings."""

__version__ = "1.0.0"

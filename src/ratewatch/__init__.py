"""ratewatch - currency and crypto threshold alerts with background checking."""

__version__ = "0.1.0"

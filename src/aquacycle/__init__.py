"""aquacycle - cultivation process lifecycle and sensor time-series core."""

__version__ = "0.1.0"

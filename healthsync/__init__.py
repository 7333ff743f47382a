"""healthsync: biometric sync pipeline."""

__version__ = "0.1.0"

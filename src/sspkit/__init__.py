"""sspkit - security-control catalog access and System Security Plan tracking."""

__version__ = "0.3.0"

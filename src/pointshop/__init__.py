"""Points redemption service with human-approved transactions."""

__version__ = "0.1.0"

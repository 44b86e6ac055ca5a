"""AI-assisted clinical note generation and risk assessment service."""

__version__ = "0.1.0"

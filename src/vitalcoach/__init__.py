"""vitalcoach - memory, nutrition and attachment services for an AI wellness coach."""

__version__ = "0.1.0"

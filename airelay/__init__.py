"""AI relay: forward chat generation requests to configured LLM providers."""

__version__ = "0.1.0"

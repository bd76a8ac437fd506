"""finflow — transaction extraction backed by a resilient LLM client."""

__version__ = "0.1.0"

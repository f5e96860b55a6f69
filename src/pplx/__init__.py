"""pplx — a command-line client for the Perplexity Sonar API with saved sessions."""

__version__ = "0.3.0"

"""gogauth: non-blocking Google OAuth for conversational agents."""

__version__ = "0.1.0"

"""covagent finds untested functions in Cobertura coverage reports."""

__version__ = "0.1.0"

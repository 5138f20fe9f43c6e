"""Find and remove npm dependencies that nothing in a project references."""

__version__ = "0.1.0"

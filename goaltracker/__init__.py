"""Goal Tracker API: GitHub sign-in, bearer tokens and owner-scoped goals."""

__version__ = "1.0.0"

"""Ward Staff — staff records, attendance, leave and disciplinary workflows."""

__version__ = "1.0.0"

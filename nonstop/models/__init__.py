"""Models used by NonStop."""

"""Package with the core controllers of NonStop."""

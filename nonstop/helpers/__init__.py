"""Various helpers and utils for NonStop."""

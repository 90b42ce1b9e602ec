"""Profile helpers for devimage recipes."""

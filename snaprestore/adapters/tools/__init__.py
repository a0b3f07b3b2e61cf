"""Local restore helper invocation."""

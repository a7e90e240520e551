"""Individual safety checks."""

"""FastAPI management surface of the fork."""

"""API routers for the Control Tower service."""

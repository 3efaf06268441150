"""API routers for the grant portal."""

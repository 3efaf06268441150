"""Service layer for submission and dashboard logic."""

"""
National Grant Assistance Portal Backend Package

This package contains the FastAPI backend for the grant portal, including:

- main.py: FastAPI application, router wiring and SPA fallback
- services/submission_service.py: authoritative application submission
- form_controller.py: multi-step application form (client library)
- cli.py: command-line client for the catalog, apply and dashboard flows
"""

__version__ = "1.0.0"

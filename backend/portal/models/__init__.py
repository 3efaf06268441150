"""
Grant Portal API Models

Pydantic models for data validation and serialization.
"""

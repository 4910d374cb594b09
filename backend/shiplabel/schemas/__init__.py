"""Pydantic schemas for the label form and service responses."""

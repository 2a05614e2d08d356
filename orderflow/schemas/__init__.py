"""Pydantic schemas for order snapshots and API responses."""

"""CRUD helpers."""

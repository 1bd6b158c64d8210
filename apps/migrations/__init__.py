"""Outcome storage migrations application package."""

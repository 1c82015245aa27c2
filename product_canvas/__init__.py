"""Data product canvas tooling."""

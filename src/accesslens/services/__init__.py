"""Service layer for AccessLens."""

"""Core configuration for AccessLens."""

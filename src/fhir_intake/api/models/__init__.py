"""API response models."""

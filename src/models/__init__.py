"""Data models for the lifecycle manager."""

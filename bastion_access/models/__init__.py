"""Data models for access targets, bastions and cleanup operations."""

"""Bastion Access - temporary security-group based access to private data resources."""

__version__ = "0.1.0"

"""Bastion discovery.

Functions:
    get_bastion: Find a bastion host by id or VPC
"""

from __future__ import annotations

__all__ = ["get_bastion"]

from .lookup import get_bastion

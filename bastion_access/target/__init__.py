"""Access targets.

Classes:
    InitTarget: Grants a bastion access to a target
    ConnectTarget: Resolves a target endpoint for connecting

Functions:
    create_init_target / create_connect_target: Bind the variant for a target kind
    list_init_targets / list_connect_targets: Catalog of selectable targets
    lookup_target: Find one target by kind and identifier
"""

from __future__ import annotations

__all__ = [
    "InitTarget",
    "ConnectTarget",
    "create_init_target",
    "create_connect_target",
    "list_init_targets",
    "list_connect_targets",
    "lookup_target",
]

from .catalog import list_connect_targets, list_init_targets, lookup_target
from .connect_target import ConnectTarget, create_connect_target
from .init_target import InitTarget, create_init_target

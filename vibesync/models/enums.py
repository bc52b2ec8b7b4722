"""
Model enumerations.
"""

from enum import Enum


class BountyStatus(str, Enum):
    """
    Bounty lifecycle.

    open -> claimed is the only transition.
    """

    OPEN = "open"
    CLAIMED = "claimed"

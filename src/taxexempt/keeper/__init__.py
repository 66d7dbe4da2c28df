"""
Keeper module for taxexempt.

The keeper is the only component that reads and writes registry state:

    - Keeper: Zone registry, membership index, listings and decisions
    - is_exempt / ResolvedZone: The pure exemption decision table
    - filtered_paginate: Ordered, filtered paging over a prefix store
"""

from taxexempt.keeper.exemption import ABSENT, ResolvedZone, is_exempt
from taxexempt.keeper.keeper import ADDRESS_PREFIX, ZONE_PREFIX, Keeper
from taxexempt.keeper.pagination import filtered_paginate

__all__ = [
    "ABSENT",
    "ADDRESS_PREFIX",
    "Keeper",
    "ResolvedZone",
    "ZONE_PREFIX",
    "filtered_paginate",
    "is_exempt",
]

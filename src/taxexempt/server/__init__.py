"""
Request handlers for taxexempt.

    - MsgServer: Authority-gated mutations (zones and memberships)
    - Querier: Read-only queries (taxable, zone and address listings)
"""

from taxexempt.server.msg_server import MsgServer
from taxexempt.server.querier import Querier

__all__ = [
    "MsgServer",
    "Querier",
]

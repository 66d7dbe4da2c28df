"""
Exemption decision engine.

Given the resolved zones of a sender and a recipient, decide whether a
transfer between them is exempt from the levy. Resolution is explicit:
a side is either present (with its Zone) or absent, and an absent side
is never modelled as a Zone with all flags false. Rules 3/4 ignore
cross_zone while rule 5 requires it, so the two must not be confused.

Decision table (first match wins):
    1. Neither side present            -> taxable
    2. Same zone on both sides         -> exempt
    3. Only the sender present         -> exempt iff sender.outgoing
    4. Only the recipient present      -> exempt iff recipient.incoming
    5. Two different present zones     -> exempt iff
         (sender.outgoing and sender.cross_zone)
         or (recipient.incoming and recipient.cross_zone)
"""

from dataclasses import dataclass

from taxexempt.schema import Zone


@dataclass(frozen=True)
class ResolvedZone:
    """
    Outcome of resolving one side of a transfer to its zone.

    Attributes:
        zone: The member's Zone, or None when the side has no membership
              (or was not specified at all)
    """

    zone: Zone | None = None

    @property
    def present(self) -> bool:
        return self.zone is not None


ABSENT = ResolvedZone()


def is_exempt(sender: ResolvedZone, recipient: ResolvedZone) -> bool:
    """Apply the decision table to two resolved sides."""
    if not sender.present and not recipient.present:
        return False

    if sender.present and recipient.present:
        s, r = sender.zone, recipient.zone
        if s.name == r.name:
            return True
        return (s.outgoing and s.cross_zone) or (r.incoming and r.cross_zone)

    if sender.present:
        return sender.zone.outgoing

    return recipient.zone.incoming

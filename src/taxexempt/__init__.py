"""
taxexempt - Zone-based tax exemption registry.

Addresses are grouped into named zones, each carrying transfer
permissions. A transfer between two addresses is exempt from the levy
according to the zones (if any) that sender and recipient belong to.
It provides:
- A persistent zone registry and address membership index
- The exemption decision for a (sender, recipient) pair
- Authority-gated mutations and paginated listings
- Genesis import/export and legacy list migration

Example usage:
    $ taxexempt tx add-zone exchange --outgoing --cross-zone -a terra1...
    $ taxexempt query taxable terra1sender... terra1recipient...
    $ taxexempt genesis export --out genesis.json
"""

__version__ = "0.1.0"
__author__ = "taxexempt Contributors"

__all__ = [
    "__version__",
    "__author__",
]

"""
ShipLabel Backend - Delivery Identifier Generator
===================================================

What:  Mints the unique token printed on a label and encoded in its barcode.
How:   uuid4(), which draws 122 random bits from os.urandom (CSPRNG).
When:  Once per /generate-label request, after input validation.

Identifiers are never stored or looked up again, so uniqueness is
probabilistic only: no history is consulted.
"""

import uuid


def new_delivery_id() -> str:
    """Return a fresh delivery identifier, e.g. '3f0c1c2e-9b7a-4d0e-8a41-0c6f2d9e1b55'."""
    return str(uuid.uuid4())

"""Arena error taxonomy.

Nothing here is fatal to the process. Each error is handled at the seam where
it is raised:

- `ProtocolError`: logged, the connection stays open.
- `IllegalActionState`: ignored, no state change and no broadcast.
- `InsufficientResource`: reported to the submitting agent only.
"""

from __future__ import annotations


class ArenaError(Exception):
    """Base class for all arena errors."""


class ProtocolError(ArenaError):
    """An inbound message could not be decoded or validated."""


class IllegalActionState(ArenaError):
    """An action arrived for a session that cannot accept it from this sender."""


class InsufficientResource(ArenaError):
    """The acting fighter lacks a resource the action requires."""


class InsufficientStamina(InsufficientResource):
    def __init__(self, stamina: int, required: int) -> None:
        super().__init__("Not enough stamina!")
        self.stamina = stamina
        self.required = required

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class UserContext:
    """
    Identity of the signed-in customer.

    - uid: Firebase Auth uid (string)
    - claims: decoded ID-token claims (empty when the uid was supplied directly)
    """

    uid: str
    claims: Mapping[str, Any] = field(default_factory=dict)

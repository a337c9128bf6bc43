"""Single shared session descriptor"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionDescriptor:
    """Identifier and embeddable URL of the hosted session"""
    session_id: str
    embed_url: str
    created_at: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, str]:
        """Wire shape used by ``session_info`` and the HTTP layer"""
        return {"sessionId": self.session_id, "embedUrl": self.embed_url}


class SessionStateStore:
    """Holds at most one session descriptor

    The store enforces nothing about liveness; the lifecycle manager is its
    only writer and keeps it pointing at a session the provisioning service
    believes is alive.
    """

    def __init__(self):
        self._descriptor: Optional[SessionDescriptor] = None

    def get(self) -> Optional[SessionDescriptor]:
        """Current descriptor, or None when idle"""
        return self._descriptor

    def set(self, descriptor: Optional[SessionDescriptor]):
        """Overwrite the stored descriptor"""
        previous = self._descriptor
        self._descriptor = descriptor
        if descriptor is None:
            logger.debug(f"Session state cleared (was {previous.session_id if previous else None})")
        else:
            logger.debug(f"Session state set to {descriptor.session_id}")

    @property
    def is_active(self) -> bool:
        return self._descriptor is not None

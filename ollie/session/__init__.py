"""Session management: in-memory multi-turn transcripts."""

from ollie.session.session import Session, SessionState

__all__ = [
    "Session",
    "SessionState",
]

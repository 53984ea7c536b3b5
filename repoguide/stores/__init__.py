"""Storage collaborators: key-value cache, sessions and jobs."""

from .jobs import Job, JobStatus, JobStore
from .kv import KeyValueStore, MemoryStore
from .sessions import SessionKeys, SessionStore, load_cipher

__all__ = [
    "Job",
    "JobStatus",
    "JobStore",
    "KeyValueStore",
    "MemoryStore",
    "SessionKeys",
    "SessionStore",
    "load_cipher",
]

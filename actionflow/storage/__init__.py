"""
Storage package - in-memory run history.
"""

from actionflow.storage.memory import RunStorage, run_storage

__all__ = ["RunStorage", "run_storage"]

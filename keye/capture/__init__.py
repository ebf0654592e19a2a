"""
Capture coordinator and its collaborators: the session store, event
intake, schedulers, broadcaster and listener lifecycle manager.
"""

from .coordinator import CaptureCoordinator, CoordinatorTimingConfig
from .session_store import CaptureSession, CaptureSessionStore

__all__ = [
    'CaptureCoordinator',
    'CaptureSession',
    'CaptureSessionStore',
    'CoordinatorTimingConfig',
]

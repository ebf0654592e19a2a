"""keye: capture the credential headers of your own authenticated browser session."""

from keye.capture import CaptureCoordinator, CaptureSession, CoordinatorTimingConfig
from keye.capture.managers import CaptureSettings, SettingsManager

__all__ = [
    'CaptureCoordinator',
    'CaptureSession',
    'CaptureSettings',
    'CoordinatorTimingConfig',
    'SettingsManager',
]

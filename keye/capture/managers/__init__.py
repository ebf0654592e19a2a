from .settings_manager import CaptureSettings, SettingsManager

__all__ = ['CaptureSettings', 'SettingsManager']

from keye.host.alarms import Alarm, AlarmService, InMemoryAlarmService, PersistentAlarmService
from keye.host.channels import ObserverChannel, QueueChannel
from keye.host.events import HostEventStream, InMemoryEventStream
from keye.host.timers import AsyncioTimerService, ManualTimerService, TimerService

__all__ = [
    'Alarm',
    'AlarmService',
    'AsyncioTimerService',
    'HostEventStream',
    'InMemoryAlarmService',
    'InMemoryEventStream',
    'ManualTimerService',
    'ObserverChannel',
    'PersistentAlarmService',
    'QueueChannel',
    'TimerService',
]

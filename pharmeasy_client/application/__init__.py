"""
Application layer: session lifecycle, navigation guard, pollers and
optimistic updates.
"""

from .navigation import NavigationOutcome, NavigationService, Navigator, RecordingNavigator
from .notification_center import InboxState, NotificationCenter
from .optimistic import OptimisticStore, PendingChange
from .polling import PollingEngine, PollingStats
from .schemas import RegistrationProfile
from .session_manager import AuthResult, BootstrapResult, SessionManager
from .session_state import SessionState
from .sos_board import SOSBoard, SOSBoardState

__all__ = [
    "SessionManager",
    "SessionState",
    "AuthResult",
    "BootstrapResult",
    "RegistrationProfile",
    "NavigationService",
    "NavigationOutcome",
    "Navigator",
    "RecordingNavigator",
    "PollingEngine",
    "PollingStats",
    "OptimisticStore",
    "PendingChange",
    "SOSBoard",
    "SOSBoardState",
    "NotificationCenter",
    "InboxState",
]

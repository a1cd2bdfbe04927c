from versioned_content.collaboration.channel import (
    BroadcastChannel,
    Subscription,
)
from versioned_content.collaboration.coordinator import (
    CollaborationCoordinator,
)
from versioned_content.collaboration.reaper import IdleSessionReaper
from versioned_content.collaboration.session import (
    CollaborativeSession,
    SessionEvent,
    SessionEventKind,
    SessionState,
    apply_payload,
)

__all__ = [
    'BroadcastChannel',
    'Subscription',
    'CollaborationCoordinator',
    'IdleSessionReaper',
    'CollaborativeSession',
    'SessionEvent',
    'SessionEventKind',
    'SessionState',
    'apply_payload',
]

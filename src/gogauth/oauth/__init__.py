from gogauth.oauth.callback_server import CallbackListener, CallbackOutcome
from gogauth.oauth.flows import FlowCoordinator, generate_state
from gogauth.oauth.models import (
    CallbackParams,
    PendingFlow,
    RevokeResult,
    StartResult,
    StatusResult,
)
from gogauth.oauth.notifications import (
    Deliverer,
    DeliveryResult,
    FollowupDelivery,
    NotificationDispatcher,
)
from gogauth.oauth.runtime import GoogleAuthRuntime, build_runtime
from gogauth.oauth.service import GoogleAuthService

__all__ = [
    "CallbackListener",
    "CallbackOutcome",
    "CallbackParams",
    "Deliverer",
    "DeliveryResult",
    "FlowCoordinator",
    "FollowupDelivery",
    "GoogleAuthRuntime",
    "GoogleAuthService",
    "NotificationDispatcher",
    "PendingFlow",
    "RevokeResult",
    "StartResult",
    "StatusResult",
    "build_runtime",
    "generate_state",
]

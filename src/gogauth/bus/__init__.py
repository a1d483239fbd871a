from gogauth.bus.events import FollowupRun
from gogauth.bus.queue import FollowupListener, FollowupQueue

__all__ = ["FollowupListener", "FollowupQueue", "FollowupRun"]

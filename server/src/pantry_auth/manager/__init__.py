"""Identity and session lifecycle managers."""

from pantry_auth.manager.activity_monitor import INTERACTION_EVENTS, ActivityMonitor
from pantry_auth.manager.platform_bootstrap import PlatformOwnerBootstrap
from pantry_auth.manager.profile_provisioner import ProfileProvisioner
from pantry_auth.manager.session_store import SessionStore

__all__ = [
    "ActivityMonitor",
    "INTERACTION_EVENTS",
    "PlatformOwnerBootstrap",
    "ProfileProvisioner",
    "SessionStore",
]

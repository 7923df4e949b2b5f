"""Module __init__: the intercepting proxy host."""
#
# PURPOSE:
# Hosts page instances for real browsers: a mitmproxy addon runs the engine
# against every HTML page it forwards.
#
#   Browser <-> UserscriptProxy (mitmproxy) <-> Website
#

from .addon import UserscriptAddon, UserscriptProxy

__all__ = ["UserscriptAddon", "UserscriptProxy"]

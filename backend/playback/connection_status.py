"""
Connectivity indicator for the viewer.

connection_status: DOWN | CONNECTING | UP

Tracked by the PlaybackEngine separately from stream state: a viewer can be
UP with no producer streaming yet.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Transport lifecycle as shown to the user.
    """
    DOWN = "DOWN"              # Not connected
    CONNECTING = "CONNECTING"  # Attempting connection (with retry backoff)
    UP = "UP"                  # Joined and receiving

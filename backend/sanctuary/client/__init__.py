"""Client side of the voice protocol: the peer mesh and its transports."""

from .mesh import LinkState, PeerLink, PeerMesh
from .speech import SpeechDetector, rms_level

__all__ = ['LinkState', 'PeerLink', 'PeerMesh', 'SpeechDetector', 'rms_level']

"""
Ceople relay server.

Matchmaking and WebRTC signaling relay for stranger-to-stranger video and
text chat. Clients connect over a single WebSocket, ask to be paired, and
then exchange SDP/ICE payloads and chat messages through the server.
"""

__version__ = "0.4.0"

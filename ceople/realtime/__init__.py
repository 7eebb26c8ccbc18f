"""Real-time matchmaking and signaling relay."""

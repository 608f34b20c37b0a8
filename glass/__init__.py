"""
Glass - Party Game Engine

A turn-based engine for party games played around one screen.
It decides who faces each challenge, keeps score and ends the game:
- Session state machine
- Participant assignment with anti-repeat pairing
- Scoring ledger and standings
- Versioned snapshots for resuming a game
"""

__version__ = "0.1.0"

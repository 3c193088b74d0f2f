"""
Friendline — a chat relay that answers like a friend would.

Inbound messages go through per-conversation session state, a fixed fallback
chain of completion providers, and a humanizing delivery pipeline.
"""

__version__ = "0.3.0"

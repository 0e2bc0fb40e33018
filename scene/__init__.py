"""
Scene editing: props, hand attachments, co-motion and the editing session.
"""

__all__ = [
    "props",
    "attachments",
    "co_motion",
    "session",
    "command_processors",
]

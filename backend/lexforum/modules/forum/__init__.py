"""
Forum Module - case-team and lawyer-advice discussions.

Features:
- Organizational and lawyer-advice forums
- Ordered categories
- Threads with pin/close moderation and view counts
- Nested replies
- Post reactions
"""

from lexforum.modules.forum.service import ForumService

__all__ = ["ForumService"]

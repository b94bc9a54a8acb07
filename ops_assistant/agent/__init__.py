"""
Intent pipeline: classification, dispatch, conversation tracking, rundowns
"""

from .conversation import ConversationTracker
from .dispatcher import IntentDispatcher
from .intent_router import IntentClassifier
from .orchestrator import Assistant
from .rundown import RundownAggregator

__all__ = [
    "Assistant",
    "ConversationTracker",
    "IntentClassifier",
    "IntentDispatcher",
    "RundownAggregator",
]

from .chat_provider import ChatProvider
from .content_generator import ContentGenerator
from .key_value_store import KeyValueStore

__all__ = [
    "ChatProvider",
    "ContentGenerator",
    "KeyValueStore",
]

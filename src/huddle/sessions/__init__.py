"""Session persistence -- the conversation store the chat route reads and appends to."""
from .store import ChatSession, SessionStore

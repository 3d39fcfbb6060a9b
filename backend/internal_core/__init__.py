from .config import AppConfig, load_config
from .note_store import InMemoryNoteStore, NoteAccessDenied, NoteNotFoundError

__all__ = ["AppConfig", "load_config", "InMemoryNoteStore", "NoteAccessDenied", "NoteNotFoundError"]

from . import auth, bikes, guardian, history

__all__ = ["auth", "bikes", "guardian", "history"]

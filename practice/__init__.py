from .bots import choose_action, owes_move

__all__ = ["choose_action", "owes_move"]

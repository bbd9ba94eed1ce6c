from .activity import ActivityEntry
from .identity import Actor, ActorKind, ActorRef
from .models import Board, Column, Member, Task

__all__ = [
    "Actor",
    "ActorKind",
    "ActorRef",
    "ActivityEntry",
    "Board",
    "Column",
    "Member",
    "Task",
]

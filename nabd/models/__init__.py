from nabd.models.base import Base
from nabd.models.message import Message

__all__ = ["Base", "Message"]

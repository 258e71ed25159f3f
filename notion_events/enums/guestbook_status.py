from enum import Enum

class GuestbookStatus(str, Enum):
    THANKS = "thanks"
    ERROR = "error"

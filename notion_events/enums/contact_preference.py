from enum import Enum

class ContactPreference(str, Enum):
    SHARE_ALL = "Share All Riverside Events With Me"
    SHARE_SIMILAR = "Share Similar Events With Me"
    DO_NOT_CONTACT = "Do Not Contact"

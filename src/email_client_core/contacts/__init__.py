"""Learned address book.

Ranks recipients by how recently and how often they were used, learning from
both fetched folder listings and sent mail.
"""

from .addresses import message_contact_entry, parse_address, recipient_entries
from .directory import ContactDirectory, decode_store, encode_store, merge, rank, score

__all__ = [
    "ContactDirectory",
    "decode_store",
    "encode_store",
    "merge",
    "message_contact_entry",
    "parse_address",
    "rank",
    "recipient_entries",
    "score",
]

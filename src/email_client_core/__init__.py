"""Email Client Core - optimistic sending, adaptive polling and contact ranking.

This package provides the stateful core behind a web email client: sent
placeholders that are reconciled against polled folder listings, a folder
refresh scheduler, and a learned address book.
"""

__version__ = "0.1.0"

from email_client_core.config import Settings, get_settings
from email_client_core.session import MailSession

__all__ = ["MailSession", "Settings", "get_settings", "__version__"]

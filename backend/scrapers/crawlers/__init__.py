"""Browser session and pacing used by the crawl controller."""

from .browser import BrowserSession
from .pacing import Pacing

__all__ = ['BrowserSession', 'Pacing']

"""
Best-effort element lookups.

Every optional field on a listing or detail page is read through these
helpers. A lookup either returns Found(value) or ABSENT; browser errors
raised while looking up an optional element never escape.
"""

import logging
from typing import List, Optional, Union

from ..base import ABSENT, Found, _Absent

Lookup = Union[Found, _Absent]


class ElementReader:
    """Wraps a browser session with Found/Absent lookups."""

    def __init__(self, session, logger: Optional[logging.Logger] = None):
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

    async def find(self, selector: str, root=None) -> Lookup:
        try:
            element = await self.session.query(selector, root)
        except Exception as e:
            self.logger.debug(f"Lookup of '{selector}' failed: {e}")
            return ABSENT
        return Found(element) if element is not None else ABSENT

    async def find_all(self, selector: str, root=None) -> List:
        try:
            return list(await self.session.query_all(selector, root))
        except Exception as e:
            self.logger.debug(f"Lookup of all '{selector}' failed: {e}")
            return []

    async def text(self, selector: str, root=None) -> Lookup:
        element = await self.find(selector, root)
        if not element:
            return ABSENT
        return await self.element_text(element.value)

    async def element_text(self, element) -> Lookup:
        try:
            text = await self.session.text(element)
        except Exception as e:
            self.logger.debug(f"Reading element text failed: {e}")
            return ABSENT
        return Found((text or '').strip())

    async def attribute(self, selector: str, name: str, root=None) -> Lookup:
        element = await self.find(selector, root)
        if not element:
            return ABSENT
        try:
            value = await self.session.attribute(element.value, name)
        except Exception as e:
            self.logger.debug(f"Reading '{name}' of '{selector}' failed: {e}")
            return ABSENT
        return Found(value) if value is not None else ABSENT

    async def inner_html(self, selector: str, root=None) -> Lookup:
        element = await self.find(selector, root)
        if not element:
            return ABSENT
        try:
            return Found(await self.session.inner_html(element.value))
        except Exception as e:
            self.logger.debug(f"Reading HTML of '{selector}' failed: {e}")
            return ABSENT

    async def texts(self, selector: str, root=None) -> List[str]:
        """Text of every element matching the selector, in document order."""
        values = []
        for element in await self.find_all(selector, root):
            text = await self.element_text(element)
            if text:
                values.append(text.value)
        return values

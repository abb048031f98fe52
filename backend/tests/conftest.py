"""
Pytest configuration and fixtures for the property crawler tests.
"""

import asyncio
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from api.database import Base, create_session_factory, create_store_engine
from api.graph_store import GraphStore
from api.main import app, get_graph_store, get_results_dir, get_vector_store
from api.vector_store import VectorBase, VectorStore
from scrapers.base import CrawlError, ElementWaitTimeout, PropertyRecord
from scrapers.config import get_site_config
from scrapers.crawlers.pacing import Pacing


# ============================================================
# FAKE BROWSER
# ============================================================

class FakeElement:
    """A DOM element as seen through the browser session."""

    def __init__(self, text: str = '', attrs: Optional[Dict] = None, html: Optional[str] = None,
                 children: Optional[Dict[str, List['FakeElement']]] = None, target: Optional[str] = None):
        self.text = text
        self.attrs = attrs or {}
        self.html = html if html is not None else text
        self.children = children or {}
        self.target = target  # URL a click navigates to


def _match(elements: Dict[str, List[FakeElement]], selector: str) -> List[FakeElement]:
    found = []
    for alternative in selector.split(','):
        found.extend(elements.get(alternative.strip(), []))
    return found


class FakeBrowserSession:
    """
    Scripted stand-in for BrowserSession.

    Pages are dicts of selector -> elements keyed by URL. Navigating to an
    unknown URL or one listed in fail_urls raises CrawlError.
    """

    def __init__(self, pages: Optional[Dict[str, Dict[str, List[FakeElement]]]] = None):
        self.pages = pages if pages is not None else {}
        self.url = 'about:blank'
        self.fail_urls = set()
        self.visits: List[str] = []
        self.clicks: List[FakeElement] = []
        self.evaluations: List = []
        self.closed = False

    @property
    def elements(self) -> Dict[str, List[FakeElement]]:
        return self.pages.get(self.url, {})

    async def goto(self, url: str):
        self.visits.append(url)
        if url in self.fail_urls or url not in self.pages:
            raise CrawlError(f"HTTP 404 for {url}")
        self.url = url

    async def current_url(self) -> str:
        return self.url

    async def wait_for(self, selector: str, timeout: float):
        found = _match(self.elements, selector)
        if not found:
            raise ElementWaitTimeout(selector, timeout)
        return found[0]

    async def query(self, selector: str, root=None):
        found = await self.query_all(selector, root)
        return found[0] if found else None

    async def query_all(self, selector: str, root=None):
        return _match(root.children if root is not None else self.elements, selector)

    async def text(self, element) -> str:
        return element.text

    async def attribute(self, element, name: str):
        return element.attrs.get(name)

    async def inner_html(self, element) -> str:
        return element.html

    async def scroll_into_view(self, element):
        pass

    async def click(self, element):
        self.clicks.append(element)
        if element.target:
            await self.goto(element.target)

    async def evaluate(self, script: str, arg=None):
        self.evaluations.append((script, arg))

    async def close(self):
        self.closed = True


class FakeSite:
    """Builds Idealista-shaped listing and detail pages for a FakeBrowserSession."""

    def __init__(self):
        self.selectors = get_site_config('idealista').selectors
        self.pages: Dict[str, Dict[str, List[FakeElement]]] = {}

    def card(self, title: str = '', href: Optional[str] = None, price: Optional[str] = None,
             details: tuple = ()) -> FakeElement:
        s = self.selectors
        children = {s['item_detail']: [FakeElement(text=d) for d in details]}
        if title or href:
            attrs = {'href': href} if href is not None else {}
            children[s['item_link']] = [FakeElement(text=title, attrs=attrs)]
        if price is not None:
            children[s['item_price']] = [FakeElement(text=price)]
        return FakeElement(children=children)

    def listing(self, url: str, cards: List[FakeElement], next_url: Optional[str] = None,
                cookie_banner: bool = False) -> str:
        s = self.selectors
        elements = {
            'section.items-container': [FakeElement()],
            s['item_card']: list(cards),
        }
        if next_url:
            elements[s['next_page']] = [FakeElement(text='Siguiente', target=next_url)]
        if cookie_banner:
            elements[s['cookie_accept']] = [FakeElement(text='Aceptar')]
        self.pages[url] = elements
        return url

    def detail(self, url: str, description: Optional[str] = None, features_primary: tuple = (),
               features_secondary: tuple = (), energy_class: Optional[str] = None) -> str:
        s = self.selectors
        elements = {
            s['features_primary']: [FakeElement(text=f) for f in features_primary],
            s['features_secondary']: [FakeElement(text=f) for f in features_secondary],
        }
        if description is not None:
            elements[s['description']] = [FakeElement(html=description)]
        if energy_class is not None:
            elements[s['energy_badge']] = [FakeElement(attrs={'class': energy_class})]
        self.pages[url] = elements
        return url

    def session(self) -> FakeBrowserSession:
        return FakeBrowserSession(self.pages)


class FakeEmbedder:
    """Bag-of-words embedding over a small vocabulary."""

    VOCABULARY = ('terraza', 'piscina', 'madrid', 'barcelona', 'garaje', 'ático', 'jardín')

    def __init__(self):
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        words = text.lower().split()
        return [float(sum(word.strip('.,:') == term for word in words)) for term in self.VOCABULARY]


class FailingEmbedder:
    def embed(self, text: str) -> List[float]:
        raise RuntimeError("embedding service unavailable")


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fake_site():
    return FakeSite()


@pytest.fixture
def no_pacing():
    return Pacing.disabled()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()


@pytest.fixture
def make_record():
    """Factory for PropertyRecords with sensible defaults."""
    def _make(url="https://www.idealista.com/inmueble/1/", **fields):
        defaults = dict(
            title="Piso en venta en Malasaña, Madrid",
            neighborhood="Malasaña",
            city="Madrid",
            price_amount=250000,
            rooms=2,
            area_sqm=70,
            extras="Planta 3ª exterior con ascensor",
        )
        defaults.update(fields)
        return PropertyRecord(url=url, **defaults)
    return _make


@pytest.fixture(scope="function")
def graph_engine():
    """Fresh in-memory database for the graph store."""
    engine = create_store_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def vector_engine():
    """Fresh in-memory database for the vector store."""
    engine = create_store_engine("sqlite:///:memory:")
    VectorBase.metadata.create_all(bind=engine)
    yield engine
    VectorBase.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(graph_engine):
    """Create a fresh database session for each test."""
    db = create_session_factory(graph_engine)()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def graph_store(graph_engine):
    store = GraphStore(engine=graph_engine, max_attempts=1, retry_seconds=0)
    asyncio.run(store.connect())
    return store


@pytest.fixture
def vector_store(vector_engine):
    store = VectorStore(engine=vector_engine, collection="test_properties")
    asyncio.run(store.initialize())
    return store


@pytest.fixture(scope="function")
def client(graph_store, vector_store, tmp_path):
    """Create a test client with store overrides."""
    app.dependency_overrides[get_graph_store] = lambda: graph_store
    app.dependency_overrides[get_vector_store] = lambda: vector_store
    app.dependency_overrides[get_results_dir] = lambda: tmp_path

    # Use TestClient directly without context manager so the lifespan stores are not opened
    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()

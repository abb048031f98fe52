"""
Similarity-search store for crawled properties.

Each property is stored as a short text document plus its embedding. When
no embedding could be computed (no API key, API failure) the document is
still stored and search falls back to keyword overlap.
"""

import asyncio
import logging
import math
import re
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from openai import OpenAI, OpenAIError
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.ext.declarative import declarative_base

from api.database import create_session_factory, create_store_engine
from scrapers.base import PropertyRecord

logger = logging.getLogger(__name__)

VectorBase = declarative_base()

TOKEN_PATTERN = re.compile(r'\w+', re.UNICODE)


def utc_now():
    return datetime.now(timezone.utc)


class PropertyDocument(VectorBase):
    __tablename__ = 'property_documents'

    id = Column(Integer, primary_key=True)
    doc_id = Column(String, nullable=False, index=True)  # prop_<last url segment>
    collection = Column(String, nullable=False, index=True)
    document = Column(Text, nullable=False)
    embedding = Column(JSON)  # list of floats, NULL when unavailable
    metadata_ = Column('metadata', JSON)
    created_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        UniqueConstraint('doc_id', 'collection', name='uq_document_collection'),
    )


class OpenAIEmbedder:
    """
    Computes text embeddings with the OpenAI API.

    The client is built lazily so a missing key only fails when an
    embedding is actually requested.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "text-embedding-3-small",
                 client: Optional[OpenAI] = None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise OpenAIError("OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def embed(self, text: str) -> List[float]:
        response = self.client.embeddings.create(model=self.model, input=text)
        return list(response.data[0].embedding)


def build_embedder(settings) -> Optional[OpenAIEmbedder]:
    """Embedder from settings, None when no API key is configured."""
    if not settings.openai_api_key:
        logger.info("No OpenAI API key configured - similarity search uses keyword matching")
        return None
    return OpenAIEmbedder(api_key=settings.openai_api_key, model=settings.embedding_model)


def document_id(url: str) -> str:
    """
    Stable document id from the last URL path segment.

    Examples:
        >>> document_id("https://www.idealista.com/inmueble/12345678/")
        'prop_12345678'
    """
    segment = (url or '').split('?', 1)[0].rstrip('/').rsplit('/', 1)[-1]
    return f"prop_{segment or int(time.time() * 1000)}"


def property_document(record: PropertyRecord) -> str:
    """Text representation embedded for similarity search."""
    return "\n".join([
        f"Property: {record.title}",
        f"Location: {record.city}, {record.neighborhood}",
        f"Price: {_fmt(record.price_amount)}€",
        f"Rooms: {_fmt(record.rooms)}",
        f"Area: {_fmt(record.area_sqm)}m²",
        f"Extras: {record.extras}",
        f"Description: {record.detailed_description}",
    ])


def fallback_document(record: PropertyRecord) -> str:
    return f"Property in {record.city} - {_fmt(record.price_amount)}€ - {_fmt(record.rooms)} rooms"


def _fmt(value) -> str:
    return '' if value is None else str(value)


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if not norm:
        return 1.0
    return 1.0 - dot / norm


def keyword_distance(query_tokens: set, document: str) -> float:
    doc_tokens = set(TOKEN_PATTERN.findall(document.lower()))
    if not query_tokens:
        return 1.0
    return 1.0 - len(query_tokens & doc_tokens) / len(query_tokens)


class VectorStore:
    """
    Stores property documents and answers free-text queries.

    Usage:
        store = VectorStore(settings.vector_database_url, embedder=build_embedder(settings))
        await store.initialize()
        doc_id = await store.store_property(record)
        matches = await store.semantic_search("piso con terraza en Madrid")
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine=None,
        collection: str = "idealista_properties",
        embedder: Optional[OpenAIEmbedder] = None,
    ):
        if database_url is None and engine is None:
            raise ValueError("VectorStore needs a database_url or an engine")
        self.database_url = database_url
        self.engine = engine
        self._owns_engine = engine is None
        self.collection = collection
        self.embedder = embedder
        self.SessionLocal = None
        self.is_initialized = False

    @classmethod
    def from_settings(cls, settings) -> 'VectorStore':
        return cls(
            settings.vector_database_url,
            collection=settings.vector_collection,
            embedder=build_embedder(settings),
        )

    async def initialize(self):
        """Open the database and create the collection table."""
        try:
            if self.engine is None:
                self.engine = create_store_engine(self.database_url)
            VectorBase.metadata.create_all(bind=self.engine)
            self.SessionLocal = create_session_factory(self.engine)
            self.is_initialized = True
            logger.info(f"✅ Vector store ready (collection '{self.collection}')")
        except Exception as e:
            logger.error(f"❌ Error initializing vector store: {e}")
            raise

    async def _embed(self, text: str) -> Optional[List[float]]:
        if self.embedder is None:
            return None
        try:
            return await asyncio.to_thread(self.embedder.embed, text)
        except Exception as e:
            logger.warning(f"Embedding failed, storing without embedding: {e}")
            return None

    async def store_property(self, record: PropertyRecord) -> Optional[str]:
        """
        Store or replace the document for a record.

        Returns:
            The document id, or None when the record could not be stored
        """
        if not self.is_initialized:
            try:
                await self.initialize()
            except Exception:
                return None

        doc_id = document_id(record.url)
        document = property_document(record)
        embedding = await self._embed(document)
        if embedding is None and self.embedder is not None:
            document = fallback_document(record)

        metadata = {
            'title': record.title,
            'city': record.city,
            'neighborhood': record.neighborhood,
            'price': record.price_amount,
            'rooms': record.rooms,
            'area_sqm': record.area_sqm,
            'url': record.url,
            'timestamp': utc_now().isoformat(),
        }

        db = self.SessionLocal()
        try:
            row = db.query(PropertyDocument).filter_by(doc_id=doc_id, collection=self.collection).first()
            if row is None:
                row = PropertyDocument(doc_id=doc_id, collection=self.collection)
                db.add(row)
            row.document = document
            row.embedding = embedding
            row.metadata_ = metadata
            db.commit()
            logger.debug(f"Stored document {doc_id}")
            return doc_id
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Error storing {record.url} in vector store: {e}")
            return None
        finally:
            db.close()

    async def semantic_search(self, query: str, limit: int = 5) -> List[Dict]:
        """
        Closest documents to a free-text query, nearest first.

        Returns:
            Dicts with id, document, metadata and distance (0 = identical)
        """
        if not self.is_initialized:
            try:
                await self.initialize()
            except Exception:
                return []

        db = self.SessionLocal()
        try:
            rows = db.query(PropertyDocument).filter_by(collection=self.collection).all()
        except Exception as e:
            logger.error(f"❌ Vector store search failed: {e}")
            return []
        finally:
            db.close()

        embedded = [row for row in rows if row.embedding]
        query_embedding = await self._embed(query) if embedded else None

        if query_embedding is not None:
            scored = [(cosine_distance(query_embedding, row.embedding), row) for row in embedded]
        else:
            tokens = set(TOKEN_PATTERN.findall(query.lower()))
            scored = [(keyword_distance(tokens, row.document), row) for row in rows]
            scored = [(distance, row) for distance, row in scored if distance < 1.0]

        scored.sort(key=lambda item: (item[0], item[1].doc_id))
        logger.info(f"🔍 '{query}': {min(len(scored), limit)} result(s)")
        return [
            {
                'id': row.doc_id,
                'document': row.document,
                'metadata': row.metadata_ or {},
                'distance': round(distance, 6),
            }
            for distance, row in scored[:limit]
        ]

    async def count(self) -> int:
        if not self.is_initialized:
            return 0
        db = self.SessionLocal()
        try:
            return db.query(PropertyDocument).filter_by(collection=self.collection).count()
        finally:
            db.close()

    async def close(self):
        if self.engine is not None and self._owns_engine:
            self.engine.dispose()
            self.engine = None
        self.is_initialized = False

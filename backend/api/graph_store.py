"""
Property graph store.

Properties are linked to their City -> Neighborhood -> Street hierarchy,
their features and energy certificate, and carry a dated price history.
Saving is an upsert keyed by the listing URL, so re-crawling a property
updates it instead of duplicating it.
"""

import asyncio
import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func, text

from api.database import (
    UNKNOWN,
    City,
    EnergyCertificate,
    Feature,
    Neighborhood,
    PriceObservation,
    Property,
    Street,
    create_session_factory,
    create_store_engine,
    init_db,
)
from scrapers.base import PropertyRecord

logger = logging.getLogger(__name__)


class GraphStore:
    """
    SQLAlchemy-backed store for crawled properties.

    Usage:
        store = GraphStore(settings.database_url)
        await store.connect()
        await store.save_property(record)
        results = await store.search_properties(city="Madrid", max_price=300000)
        await store.close()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine=None,
        max_attempts: int = 3,
        retry_seconds: float = 5.0,
    ):
        if database_url is None and engine is None:
            raise ValueError("GraphStore needs a database_url or an engine")
        self.database_url = database_url
        self.engine = engine
        self._owns_engine = engine is None
        self.max_attempts = max(1, max_attempts)
        self.retry_seconds = retry_seconds
        self.SessionLocal = None
        self.is_connected = False

    @classmethod
    def from_settings(cls, settings) -> 'GraphStore':
        return cls(
            settings.database_url,
            max_attempts=settings.graph_connect_attempts,
            retry_seconds=settings.graph_retry_seconds,
        )

    async def connect(self, attempts: Optional[int] = None) -> bool:
        """
        Open the database and create the schema.

        Retries up to attempts (default max_attempts) times, retry_seconds apart.

        Raises:
            Exception: The last connection error once attempts are exhausted
        """
        attempts = self.max_attempts if attempts is None else max(1, attempts)
        for attempt in range(1, attempts + 1):
            try:
                if self.engine is None:
                    self.engine = create_store_engine(self.database_url)
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                init_db(self.engine)
                self.SessionLocal = create_session_factory(self.engine)
                self.is_connected = True
                logger.info(f"✅ Graph store connected ({self.engine.url.render_as_string(hide_password=True)})")
                return True
            except Exception as e:
                logger.error(f"❌ Graph store connection failed (attempt {attempt}/{attempts}): {e}")
                if self._owns_engine and self.engine is not None:
                    self.engine.dispose()
                    self.engine = None
                if attempt >= attempts:
                    raise
                logger.info(f"🔄 Retrying in {self.retry_seconds:g}s...")
                await asyncio.sleep(self.retry_seconds)
        return False

    async def save_property(self, record: PropertyRecord) -> bool:
        """
        Upsert one property and its relations.

        Never raises: failures are logged and reported as False.
        """
        # One reconnect attempt per save, without the retry delay
        if not self.is_connected:
            try:
                await self.connect(attempts=1)
            except Exception:
                logger.warning("⚠️ Graph store unavailable, skipping save")
                return False

        db = self.SessionLocal()
        try:
            self._upsert(db, record)
            db.commit()
            logger.debug(f"Saved property to graph store: {record.url}")
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Error saving {record.url} to graph store: {e}")
            return False
        finally:
            db.close()

    def _upsert(self, db, record: PropertyRecord) -> Property:
        city = self._get_or_create(db, City, name=record.city or UNKNOWN)
        neighborhood = self._get_or_create(
            db, Neighborhood, name=record.neighborhood or UNKNOWN, city_id=city.id
        )
        street = self._get_or_create(
            db, Street, name=record.street or UNKNOWN, neighborhood_id=neighborhood.id
        )
        certificate = self._get_or_create(db, EnergyCertificate, rating=record.energy_rating or UNKNOWN)

        prop = db.query(Property).filter_by(url=record.url).first()
        if prop is None:
            prop = Property(url=record.url, source='idealista')
            db.add(prop)

        prop.title = record.title or 'Untitled'
        prop.address = record.address_line
        prop.price = record.price_amount
        prop.rooms = record.rooms
        prop.area_sqm = record.area_sqm
        prop.extras = record.extras
        prop.garage = record.garage
        prop.description = record.detailed_description
        prop.city = city
        prop.neighborhood = neighborhood
        prop.street = street
        prop.energy_certificate = certificate
        db.flush()

        # Features only accumulate, a repeated name yields one relation
        linked = {f.name for f in prop.features}
        for name in record.features:
            name = name.strip()
            if not name or name in linked:
                continue
            prop.features.append(self._get_or_create(db, Feature, name=name))
            linked.add(name)

        if record.price_amount is not None:
            today = date.today()
            observation = db.query(PriceObservation).filter_by(
                property_id=prop.id, observed_on=today
            ).first()
            if observation is None:
                db.add(PriceObservation(property_id=prop.id, amount=record.price_amount, observed_on=today))
            else:
                observation.amount = record.price_amount

        db.flush()
        return prop

    @staticmethod
    def _get_or_create(db, model, **fields):
        instance = db.query(model).filter_by(**fields).first()
        if instance is None:
            instance = model(**fields)
            db.add(instance)
            db.flush()
        return instance

    async def search_properties(
        self,
        city: Optional[str] = None,
        neighborhood: Optional[str] = None,
        max_price: Optional[int] = None,
        min_rooms: Optional[int] = None,
        limit: int = 20,
    ) -> List[Dict]:
        """
        Find stored properties, cheapest first.

        Args:
            city: City name, case-insensitive
            neighborhood: Neighborhood name, case-insensitive
            max_price: Upper price bound (unpriced properties are excluded)
            min_rooms: Lower bound on rooms
            limit: Maximum number of results

        Returns:
            Property dicts, or [] when the store is unavailable
        """
        if not self.is_connected:
            return []

        db = self.SessionLocal()
        try:
            query = db.query(Property)
            if city:
                query = query.join(Property.city).filter(func.lower(City.name) == city.strip().lower())
            if neighborhood:
                query = query.join(Property.neighborhood).filter(
                    func.lower(Neighborhood.name) == neighborhood.strip().lower()
                )
            if max_price is not None:
                query = query.filter(Property.price.isnot(None), Property.price <= max_price)
            if min_rooms is not None:
                query = query.filter(Property.rooms >= min_rooms)

            query = query.order_by(Property.price.is_(None), Property.price, Property.id)
            return [self._to_dict(p) for p in query.limit(limit).all()]
        except Exception as e:
            logger.error(f"❌ Graph store search failed: {e}")
            return []
        finally:
            db.close()

    async def get_property(self, url: str) -> Optional[Dict]:
        if not self.is_connected:
            return None
        db = self.SessionLocal()
        try:
            prop = db.query(Property).filter_by(url=url).first()
            return self._to_dict(prop) if prop else None
        finally:
            db.close()

    @staticmethod
    def _to_dict(prop: Property) -> Dict:
        return {
            'url': prop.url,
            'title': prop.title,
            'address': prop.address,
            'city': prop.city.name if prop.city else None,
            'neighborhood': prop.neighborhood.name if prop.neighborhood else None,
            'street': prop.street.name if prop.street else None,
            'price': prop.price,
            'rooms': prop.rooms,
            'area_sqm': prop.area_sqm,
            'extras': prop.extras,
            'garage': bool(prop.garage),
            'description': prop.description,
            'energy_rating': prop.energy_certificate.rating if prop.energy_certificate else None,
            'features': sorted(f.name for f in prop.features),
            'price_history': [
                {'date': obs.observed_on.isoformat(), 'amount': obs.amount}
                for obs in prop.price_history
            ],
            'last_updated': prop.last_updated.isoformat() if prop.last_updated else None,
        }

    async def close(self):
        if self.engine is not None and self._owns_engine:
            self.engine.dispose()
            self.engine = None
        if self.is_connected:
            logger.info("🔌 Graph store connection closed")
        self.is_connected = False

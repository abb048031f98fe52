from sqlalchemy import create_engine, Column, Integer, String, DateTime, Date, Boolean, Text, ForeignKey, Table, Index, UniqueConstraint
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, relationship
from sqlalchemy.pool import StaticPool
from datetime import datetime, timezone
from pathlib import Path


def utc_now():
    """Return current UTC time (timezone-aware). Replaces deprecated datetime.utcnow()."""
    return datetime.now(timezone.utc)


# Name used when a location level or energy rating is missing
UNKNOWN = 'Unknown'

Base = declarative_base()

# Association table for many-to-many relationship between properties and features
property_features = Table('property_features', Base.metadata,
    Column('property_id', Integer, ForeignKey('properties.id'), primary_key=True),
    Column('feature_id', Integer, ForeignKey('features.id'), primary_key=True)
)


class City(Base):
    __tablename__ = 'cities'

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False, index=True)

    neighborhoods = relationship("Neighborhood", back_populates="city")
    properties = relationship("Property", back_populates="city")


class Neighborhood(Base):
    __tablename__ = 'neighborhoods'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, index=True)
    city_id = Column(Integer, ForeignKey('cities.id'), nullable=False, index=True)

    city = relationship("City", back_populates="neighborhoods")
    streets = relationship("Street", back_populates="neighborhood")
    properties = relationship("Property", back_populates="neighborhood")

    # Same neighborhood name may exist in different cities
    __table_args__ = (
        UniqueConstraint('name', 'city_id', name='uq_neighborhood_city'),
    )


class Street(Base):
    __tablename__ = 'streets'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, index=True)
    neighborhood_id = Column(Integer, ForeignKey('neighborhoods.id'), nullable=False, index=True)

    neighborhood = relationship("Neighborhood", back_populates="streets")
    properties = relationship("Property", back_populates="street")

    __table_args__ = (
        UniqueConstraint('name', 'neighborhood_id', name='uq_street_neighborhood'),
    )


class EnergyCertificate(Base):
    __tablename__ = 'energy_certificates'

    id = Column(Integer, primary_key=True)
    rating = Column(String, unique=True, nullable=False)  # A..G, or the raw badge class

    properties = relationship("Property", back_populates="energy_certificate")


class Feature(Base):
    __tablename__ = 'features'

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    properties = relationship("Property", secondary=property_features, back_populates="features")


class Property(Base):
    __tablename__ = 'properties'

    id = Column(Integer, primary_key=True)
    url = Column(String, unique=True, nullable=False, index=True)  # Identity of a property
    source = Column(String, default='idealista')

    # Listing card
    title = Column(String, nullable=False)
    address = Column(String)  # "street, neighborhood, city"
    price = Column(Integer, index=True)  # Latest observed price, whole euros
    rooms = Column(Integer, index=True)
    area_sqm = Column(Integer)
    extras = Column(String)  # e.g. "Planta 3ª exterior con ascensor"
    garage = Column(Boolean, default=False)

    # Detail page
    description = Column(Text)

    # Location hierarchy
    city_id = Column(Integer, ForeignKey('cities.id'), index=True)
    neighborhood_id = Column(Integer, ForeignKey('neighborhoods.id'), index=True)
    street_id = Column(Integer, ForeignKey('streets.id'), index=True)
    energy_certificate_id = Column(Integer, ForeignKey('energy_certificates.id'))

    # Metadata
    created_at = Column(DateTime, default=utc_now)
    last_updated = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    city = relationship("City", back_populates="properties")
    neighborhood = relationship("Neighborhood", back_populates="properties")
    street = relationship("Street", back_populates="properties")
    energy_certificate = relationship("EnergyCertificate", back_populates="properties")
    features = relationship("Feature", secondary=property_features, back_populates="properties")
    price_history = relationship("PriceObservation", back_populates="property",
                                 cascade="all, delete-orphan", order_by="PriceObservation.observed_on")

    __table_args__ = (
        Index('ix_properties_city_price', 'city_id', 'price'),
    )


class PriceObservation(Base):
    __tablename__ = 'price_observations'

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, ForeignKey('properties.id'), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    observed_on = Column(Date, nullable=False)

    property = relationship("Property", back_populates="price_history")

    # A property gets at most one price per day; re-crawls the same day update it
    __table_args__ = (
        UniqueConstraint('property_id', 'observed_on', name='uq_price_property_day'),
    )


def create_store_engine(database_url: str):
    """
    Create an engine for the given URL.

    In-memory SQLite shares a single connection so every session sees the
    same database; file-based SQLite gets its parent directory created.
    """
    if database_url.startswith('sqlite'):
        connect_args = {'check_same_thread': False}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            return create_engine(database_url, echo=False, connect_args=connect_args, poolclass=StaticPool)

        db_path = database_url.split('///', 1)[-1]
        if db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, echo=False, connect_args=connect_args)

    # Configure engine with connection pooling for server databases
    return create_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,    # Verify connections before use (handles stale connections)
        pool_recycle=3600,
    )


def create_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine):
    Base.metadata.create_all(bind=engine)

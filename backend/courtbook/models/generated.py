from sqlalchemy import CheckConstraint, Column, Enum, Float, ForeignKey, Index, Integer, Text, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Users(Base):
    __tablename__ = 'users'

    first_name = Column(Text, nullable=False)
    role = Column(Enum('admin', 'coach', 'client', name='user_role'), nullable=False, server_default=text("'client'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    last_name = Column(Text)
    email = Column(Text)
    phone = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    client_wallets = relationship('ClientWallets', back_populates='user')
    bookings = relationship('Bookings', back_populates='client', foreign_keys='Bookings.client_id')
    coached_bookings = relationship('Bookings', back_populates='coach', foreign_keys='Bookings.coach_id')


class Locations(Base):
    __tablename__ = 'locations'

    name = Column(Text, nullable=False)
    is_deleted = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    address = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)
    notes = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    availabilities = relationship('Availabilities', back_populates='location')
    bookings = relationship('Bookings', back_populates='location')


class Availabilities(Base):
    __tablename__ = 'availabilities'
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='ck_availabilities_range'),
        CheckConstraint('max_capacity > 0', name='ck_availabilities_capacity'),
        Index('ix_availabilities_location_start', 'location_id', 'start_time'),
        Index('ix_availabilities_batch', 'batch_id'),
    )

    location_id = Column(ForeignKey('locations.id', ondelete='RESTRICT'), nullable=False)
    # UTC instants, ISO-8601 "YYYY-MM-DDTHH:MM:SS.mmmZ" (fixed width, sorts lexically)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    max_capacity = Column(Integer, nullable=False, server_default=text('10'))
    is_full = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    service_name = Column(Text)
    batch_id = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    location = relationship('Locations', back_populates='availabilities')


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='ck_bookings_range'),
        Index('ix_bookings_location_start', 'location_id', 'start_time'),
    )

    client_id = Column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    location_id = Column(ForeignKey('locations.id', ondelete='RESTRICT'), nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    credit_cost = Column(Float, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    service_name = Column(Text)
    coach_id = Column(ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    client = relationship('Users', back_populates='bookings', foreign_keys=[client_id])
    coach = relationship('Users', back_populates='coached_bookings', foreign_keys=[coach_id])
    location = relationship('Locations', back_populates='bookings')
    wallet_transactions = relationship('WalletTransactions', back_populates='booking')


class ClientWallets(Base):
    __tablename__ = 'client_wallets'

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    balance = Column(Float, nullable=False, server_default=text('0'))
    currency = Column(Text, nullable=False, server_default=text("'AUD'"))
    is_blocked = Column(Integer, nullable=False, server_default=text('0'))
    # Bumped on every balance mutation
    version = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)

    user = relationship('Users', back_populates='client_wallets')
    wallet_transactions = relationship('WalletTransactions', back_populates='wallet')


class WalletTransactions(Base):
    __tablename__ = 'wallet_transactions'

    wallet_id = Column(ForeignKey('client_wallets.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(Enum('deposit', 'payment', 'refund', 'correction', name='wallet_tx_type'), nullable=False)
    id = Column(Integer, primary_key=True)
    booking_id = Column(ForeignKey('bookings.id', ondelete='SET NULL'))
    description = Column(Text)
    created_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    wallet = relationship('ClientWallets', back_populates='wallet_transactions')
    booking = relationship('Bookings', back_populates='wallet_transactions')

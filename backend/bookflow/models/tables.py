from sqlalchemy import Column, ForeignKey, Float, Index, Integer, Table, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata

# Statuses that hold time on a staff member's calendar
OCCUPYING_STATUSES = ("pending", "confirmed", "completed")


class Businesses(Base):
    __tablename__ = 'businesses'

    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    timezone = Column(Text, nullable=False, server_default=text("'UTC'"))
    working_hours = Column(Text, nullable=False, server_default=text("'{}'"))
    # NULL rules fall back to the configured defaults
    slot_interval_minutes = Column(Integer)
    min_notice_hours = Column(Integer)
    advance_days = Column(Integer)
    morning_ends = Column(Text, nullable=False, server_default=text("'12:00'"))
    afternoon_ends = Column(Text, nullable=False, server_default=text("'17:00'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    services = relationship('Services', back_populates='business')
    staff = relationship('Staff', back_populates='business')
    bookings = relationship('Bookings', back_populates='business')


class Services(Base):
    __tablename__ = 'services'

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, nullable=False, server_default=text('0'))
    price = Column(Float, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    business = relationship('Businesses', back_populates='services')
    bookings = relationship('Bookings', back_populates='service')


class Staff(Base):
    __tablename__ = 'staff'

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    working_hours = Column(Text, nullable=False, server_default=text("'{}'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    role_name = Column(Text)

    business = relationship('Businesses', back_populates='staff')
    bookings = relationship('Bookings', back_populates='staff')
    blocked_slots = relationship('BlockedSlots', back_populates='staff')


t_staff_services = Table(
    'staff_services', metadata,
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
    Column('staff_id', ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
    Column('is_active', Integer, nullable=False, server_default=text('1')),
    UniqueConstraint('service_id', 'staff_id')
)


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index('ix_bookings_staff_start', 'staff_id', 'date_start'),
    )

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    customer_name = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    # "YYYY-MM-DD HH:MM:SS", business-local
    date_start = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    # date_end + buffer: the staff member is busy until then
    blocked_until = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, nullable=False, server_default=text('0'))
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    expires_at = Column(Text)
    notes = Column(Text)
    cancel_reason = Column(Text)

    business = relationship('Businesses', back_populates='bookings')
    service = relationship('Services', back_populates='bookings')
    staff = relationship('Staff', back_populates='bookings')


class BlockedSlots(Base):
    __tablename__ = 'blocked_slots'

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    slot_date = Column(Text, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    reason = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    staff = relationship('Staff', back_populates='blocked_slots')


_OCCUPYING_SQL = ", ".join(f"'{s}'" for s in OCCUPYING_STATUSES)

# Storage-level guard: two occupying bookings of one staff member never
# overlap. Violations abort the statement with "slot_already_taken".
OVERLAP_TRIGGERS = [
    f"""
    CREATE TRIGGER IF NOT EXISTS bookings_no_overlap_insert
    BEFORE INSERT ON bookings
    WHEN NEW.status IN ({_OCCUPYING_SQL})
    BEGIN
        SELECT RAISE(ABORT, 'slot_already_taken')
        WHERE EXISTS (
            SELECT 1 FROM bookings AS b
            WHERE b.staff_id = NEW.staff_id
              AND b.status IN ({_OCCUPYING_SQL})
              AND b.date_start < NEW.blocked_until
              AND NEW.date_start < b.blocked_until
        );
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS bookings_no_overlap_update
    BEFORE UPDATE OF staff_id, date_start, blocked_until, status ON bookings
    WHEN NEW.status IN ({_OCCUPYING_SQL})
    BEGIN
        SELECT RAISE(ABORT, 'slot_already_taken')
        WHERE EXISTS (
            SELECT 1 FROM bookings AS b
            WHERE b.id != NEW.id
              AND b.staff_id = NEW.staff_id
              AND b.status IN ({_OCCUPYING_SQL})
              AND b.date_start < NEW.blocked_until
              AND NEW.date_start < b.blocked_until
        );
    END
    """,
]

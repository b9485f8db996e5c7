# godown_allocation/models.py
import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    """Generate a primary key in the same uuid text form the hosted database uses."""
    return str(uuid.uuid4())


class GodownType(enum.Enum):
    """Godown tiers.

    Values:
        MICRO ('micro'): Under one panchayath, serves specific wards. Customer visible.
        LOCAL ('local'): Multi panchayath backup for micro godowns. Not customer visible.
        AREA ('area'): Multi panchayath, also stocks selling partners. Customer visible.
    """
    MICRO = 'micro'
    LOCAL = 'local'
    AREA = 'area'

    def __str__(self):
        """Return the string value of the enum."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'GodownType':
        """Create a GodownType from a string value.

        Raises:
            ValueError if the string value is not valid
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid godown type: {value}. Valid values are: micro, local, area")


class TransferStatus(enum.Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    REJECTED = 'rejected'

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


class TransferType(enum.Enum):
    TRANSFER = 'transfer'   # local -> micro, or out of an area godown
    RETURN = 'return'       # micro -> local

    def __str__(self):
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'TransferType':
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid transfer type: {value}. Valid values are: transfer, return")


class BatchSelectionPolicy(enum.Enum):
    """Which stock entry a transfer draws from at the source godown."""
    FIFO_CREATED = 'fifo_created'   # oldest created entry first
    FIFO_EXPIRY = 'fifo_expiry'     # earliest expiry first, undated entries last

    def __str__(self):
        return self.value


class Severity(enum.Enum):
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'

    def __str__(self):
        return self.value


class Godown(Base):
    __tablename__ = 'godowns'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    godown_type = Column(String(20), nullable=False, default=GodownType.MICRO.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class LocalBody(Base):
    """Panchayath / municipality. Static reference data."""
    __tablename__ = 'locations_local_bodies'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    body_type = Column(String(50), nullable=False, default='panchayath')
    ward_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class GodownLocalBody(Base):
    __tablename__ = 'godown_local_bodies'

    id = Column(String(36), primary_key=True, default=new_id)
    godown_id = Column(String(36), ForeignKey('godowns.id', ondelete='CASCADE'), nullable=False)
    local_body_id = Column(String(36), ForeignKey('locations_local_bodies.id'), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        UniqueConstraint('godown_id', 'local_body_id', name='uq_godown_local_body'),
    )


class GodownWard(Base):
    __tablename__ = 'godown_wards'

    id = Column(String(36), primary_key=True, default=new_id)
    godown_id = Column(String(36), ForeignKey('godowns.id', ondelete='CASCADE'), nullable=False)
    local_body_id = Column(String(36), ForeignKey('locations_local_bodies.id'), nullable=False)
    ward_number = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        # A ward belongs to at most one micro godown
        UniqueConstraint('local_body_id', 'ward_number', name='uq_godown_ward'),
        Index('idx_godown_wards_godown', 'godown_id', 'local_body_id'),
    )


class Product(Base):
    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    price = Column(Float, default=0.0)
    mrp = Column(Float, default=0.0)
    category = Column(String(100))
    is_active = Column(Boolean, nullable=False, default=True)


class StockEntry(Base):
    __tablename__ = 'godown_stock'

    id = Column(String(36), primary_key=True, default=new_id)
    godown_id = Column(String(36), ForeignKey('godowns.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)  # signed, may go negative
    purchase_price = Column(Float, nullable=False, default=0.0)
    batch_number = Column(String(100))
    expiry_date = Column(Date)
    purchase_number = Column(String(100))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index('idx_godown_stock_godown_product', 'godown_id', 'product_id'),
    )


class StockTransfer(Base):
    __tablename__ = 'stock_transfers'

    id = Column(String(36), primary_key=True, default=new_id)
    # Weak references: transfers outlive the godowns they mention
    from_godown_id = Column(String(36), nullable=False)
    to_godown_id = Column(String(36), nullable=False)
    product_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False)
    batch_number = Column(String(100))
    transfer_type = Column(String(20), nullable=False, default=TransferType.TRANSFER.value)
    status = Column(String(20), nullable=False, default=TransferStatus.PENDING.value)
    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index('idx_stock_transfers_status', 'status'),
    )


class SellerProduct(Base):
    """Selling partner listing. Its stock figure is independent of godown_stock."""
    __tablename__ = 'seller_products'

    id = Column(String(36), primary_key=True, default=new_id)
    seller_id = Column(String(36), nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Float, default=0.0)
    mrp = Column(Float, default=0.0)
    stock = Column(Integer, default=0)
    category = Column(String(100))
    is_approved = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    area_godown_id = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.now)

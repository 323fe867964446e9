import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DECIMAL,
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_`%(constraint_name)s`",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class User(Base):
    """
    Represents a customer of the bookstore.

    Users are owned by the identity side of the application; the order
    module only reads them to attach orders and to scope listings.

    Table: user

    Attributes:
        id (uuid.UUID): Unique identifier for the user.
        name (str): Unique username, also the `sub` claim of the access token.
        email (str): Unique email address.
        created_at (datetime): Timestamp when the user was created.
        scopes (list[str]): Permission scopes assigned to the user ('user', 'admin').
        is_active (bool): Flag indicating whether the user account is active.
        orders (list[Order]): Orders placed by the user.
    """

    __tablename__ = "user"

    id: Mapped[uuid.UUID] = mapped_column(
        default=lambda: uuid.uuid4(), primary_key=True, unique=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )
    scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=[])
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    orders: Mapped[list["Order"]] = relationship(back_populates="user")

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name!r})"


class Book(Base):
    """
    Represents a book that can be ordered.

    Attributes:
        `id (uuid.UUID)`: Unique identifier for the book (primary key).
        `title (str)`: Display name of the book (max 100 characters).
        `description (str | None)`: Optional summary, sent to the payment provider.
        `price (Decimal)`: Price of the book (max 9999.99).
        `created_at (datetime)`: Timestamp when the book was added.
    """

    __tablename__ = "book"
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=lambda: uuid.uuid4(), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(DECIMAL(6, 2), default=0.00, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )

    def __repr__(self):
        return f"{self.__class__.__name__}({self.title!r})"


class OrderItem(Base):
    """
    Represents one book inside an order.

    Attributes:
        `id (UUID)`: Unique identifier for the order item.
        `order_id (UUID)`: Foreign key referencing the parent Order.
        `book_id (UUID)`: Foreign key referencing the purchased Book.
        `price (Decimal)`: Unit price of the book at the time of the order.
        `quantity (int)`: Quantity of this book, always 1 for checkout orders.
    """

    __tablename__ = "order_item"
    id: Mapped[uuid.UUID] = mapped_column(
        default=lambda: uuid.uuid4(), primary_key=True, unique=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("order.id", ondelete="CASCADE"), nullable=False
    )
    book_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("book.id"), nullable=False)
    price: Mapped[float] = mapped_column(DECIMAL(6, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    order: Mapped["Order"] = relationship(back_populates="items")
    book: Mapped["Book"] = relationship()

    def __repr__(self):
        return (
            f"<OrderItem(id={self.id}, book_id={self.book_id}, "
            f"quantity={self.quantity}, price={self.price}, order_id={self.order_id})>"
        )


class Order(Base):
    """
    Represents a checkout order containing one or more order items.

    Attributes:
        `id (UUID)`: Unique identifier for the order.
        `user_id (UUID)`: Foreign key referencing the user who placed the order.
        `amount (Decimal)`: Sum of the item prices.
        `payment_status (str)`: One of `PaymentStatusEnum` (PENDING until the provider confirms).
        `payment_method (str)`: Payment provider tag, e.g. 'STRIPE'.
        `checkout_session_id (str | None)`: Provider session id, used to match webhooks.
        `created_at (datetime)`: Timestamp of when the order was placed.
        `updated_at (datetime)`: Timestamp of the last change.
        `items (list[OrderItem])`: Items included in the order.
    """

    __tablename__ = "order"
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=lambda: uuid.uuid4(), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"), nullable=False)
    amount: Mapped[float] = mapped_column(DECIMAL(8, 2), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    checkout_session_id: Mapped[str] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )
    user: Mapped["User"] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return (
            f"<Order(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, status={self.payment_status})>"
        )

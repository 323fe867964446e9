import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from fastapi import status
from fastapi.exceptions import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from book_orders.config import StripeSettings
from book_orders.helpers.query_builder import QueryBuilder
from book_orders.interfaces.order_interface import AbstractOrderInterface
from book_orders.interfaces.payment_interface import AbstractPaymentInterface
from book_orders.models.app_models import Book, Order, OrderItem, User
from book_orders.schemas.order_schema import (
    CheckoutLineItem,
    OrderCreateRequest,
    OrderPlaceSuccessfully,
    OrderResponse,
    PaymentMethodEnum,
    PaymentStatusEnum,
)
from book_orders.schemas.query_schemas import GenericResponse, QueryParams

logger = logging.getLogger(__name__)

ORDER_TYPE = "BOOK"
ORDER_SEARCH_FIELDS = ["payment_status", "payment_method", "checkout_session_id"]
ORDER_RELATIONS = (
    selectinload(Order.user),
    selectinload(Order.items).selectinload(OrderItem.book),
)


def to_cents(price: Decimal) -> int:
    return int((Decimal(price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class OrderRepository(AbstractOrderInterface):
    """
    Persistence and checkout logic for book orders.

    Attributes:
        user (User | None): The authenticated user placing the order.
        order_data (OrderCreateRequest | None): Book ids submitted for checkout.
        async_session (AsyncSession | None): The SQLAlchemy async session.
        payment_gateway (AbstractPaymentInterface | None): Provider opening checkout sessions.
        stripe_settings (StripeSettings | None): Redirect URLs for the checkout session.
        query (QueryParams | None): Listing parameters for the fetch methods.
        user_email (str | None): Email whose paid orders `fetch_my_orders` returns.
    """

    user: User | None = None
    order_data: OrderCreateRequest | None = None
    async_session: AsyncSession | None = None
    payment_gateway: AbstractPaymentInterface | None = None
    stripe_settings: StripeSettings | None = None
    query: QueryParams | None = None
    user_email: str | None = None

    async def place_order(self) -> OrderPlaceSuccessfully:
        """
        Create a PENDING order for the requested books and open a checkout session.

        Steps:
        1. Look up all requested books with a single `IN` query.
        2. Every occurrence of a found id becomes one item (quantity 1, price
           captured now) and adds its price to the total; unknown ids are skipped.
        3. The order and its items are flushed, then the payment provider is
           asked for a checkout session tagged with the order id, the order
           type and the user id.
        4. The session id is stored on the order and the transaction commits.

        Any failure, including one from the payment provider, rolls the whole
        transaction back so no order is left without a checkout session.

        Returns:
            OrderPlaceSuccessfully: The new order id and the hosted payment URL.

        Raises:
            HTTPException 404: If none of the requested books exist.
        """
        try:
            requested_ids = self.order_data.book_ids
            stmt = select(Book).where(Book.id.in_(requested_ids))
            books_in_db = (await self.async_session.execute(stmt)).scalars().all()
            if not books_in_db:
                logger.warning("No books found for ids %s", requested_ids)
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="No books found !",
                )

            book_lookup = {book.id: book for book in books_in_db}
            ordered_books = [
                book_lookup[book_id] for book_id in requested_ids if book_id in book_lookup
            ]
            total_price = sum((book.price for book in ordered_books), Decimal("0"))

            order = Order(
                user_id=self.user.id,
                amount=total_price,
                payment_status=PaymentStatusEnum.PENDING.value,
                payment_method=PaymentMethodEnum.STRIPE.value,
                items=[
                    OrderItem(book_id=book.id, price=book.price, quantity=1)
                    for book in ordered_books
                ],
            )
            self.async_session.add(order)
            await self.async_session.flush()

            checkout = await self.payment_gateway.create_checkout_session(
                line_items=[
                    CheckoutLineItem(
                        name=book.title,
                        description=book.description or "Book purchase",
                        unit_amount=to_cents(book.price),
                        quantity=1,
                    )
                    for book in ordered_books
                ],
                success_url=self.stripe_settings.success_url,
                cancel_url=self.stripe_settings.cancel_url,
                metadata={
                    "orderId": str(order.id),
                    "orderType": ORDER_TYPE,
                    "userId": str(self.user.id),
                },
            )
            order.checkout_session_id = checkout.session_id
            order_id = order.id
            await self.async_session.commit()
            logger.info(
                "Order %s placed by user %s for %s (%d items)",
                order_id,
                self.user.id,
                total_price,
                len(ordered_books),
            )
            return OrderPlaceSuccessfully(order_id=order_id, payment_url=checkout.url)
        except Exception:
            await self.async_session.rollback()
            raise
        finally:
            await self.async_session.close()

    def _order_query(self) -> QueryBuilder:
        return QueryBuilder.from_query(Order, self.query, range_field="amount")

    async def _list(self, builder: QueryBuilder) -> GenericResponse:
        builder = (
            builder.range()
            .search(ORDER_SEARCH_FIELDS)
            .filter()
            .sort()
            .paginate()
            .fields()
        )
        orders = await builder.execute(self.async_session, *ORDER_RELATIONS)
        meta = await builder.count_total(self.async_session)
        return GenericResponse(
            meta=meta,
            data=[serialize_order(order, builder.selected_fields) for order in orders],
        )

    async def fetch_all_orders(self) -> GenericResponse:
        """
        List every order with its user and items (each with book details).

        Filtering, searching, the `amount` range, sorting, pagination and
        field selection come from `self.query`.
        """
        return await self._list(self._order_query())

    async def fetch_my_orders(self) -> GenericResponse:
        """List the PAID orders belonging to `self.user_email`."""
        builder = self._order_query().constrain(
            Order.user.has(User.email == self.user_email),
            Order.payment_status == PaymentStatusEnum.PAID.value,
        )
        return await self._list(builder)


def serialize_order(order: Order, selected_fields: tuple[str, ...] | None) -> dict[str, Any]:
    """Dump an order to its wire shape; relations are always included."""
    include = None
    if selected_fields is not None:
        include = set(selected_fields) | {"user", "items"}
    return OrderResponse.model_validate(order).model_dump(
        mode="json", by_alias=True, include=include
    )

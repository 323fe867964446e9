import logging
from typing import Annotated

import stripe
from fastapi import APIRouter, Body, Depends, HTTPException, Request, Security, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from book_orders.config import get_stripe_settings
from book_orders.db.db_connection import get_async_db
from book_orders.interfaces.payment_interface import AbstractPaymentInterface
from book_orders.models.app_models import User
from book_orders.repositories.order_repository import OrderRepository
from book_orders.repositories.payment_repository import get_payment_gateway
from book_orders.repositories.user_logic import get_current_active_user
from book_orders.schemas.order_schema import OrderCreateRequest, OrderPlaceSuccessfully
from book_orders.schemas.query_schemas import GenericResponse, QueryParams
from book_orders.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/order", tags=["routes for the order"])


def get_query_params(request: Request) -> QueryParams:
    """Collect the raw query string into `QueryParams`; unknown keys become filters."""
    return QueryParams.model_validate(dict(request.query_params))


@router.post(
    "/place-order",
    response_model=OrderPlaceSuccessfully,
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    user: Annotated[User, Depends(get_current_active_user)],
    order_data: Annotated[OrderCreateRequest, Body()],
    async_session: Annotated[AsyncSession, Depends(get_async_db)],
    payment_gateway: Annotated[AbstractPaymentInterface, Depends(get_payment_gateway)],
) -> OrderPlaceSuccessfully:
    """
    Create an order for the given books and return the hosted payment URL.

    The order stays PENDING until the payment provider confirms the payment.

    Raises:
        HTTPException:
            - 404 Not Found if none of the books exist.
            - 400 Bad Request on a database integrity error.
            - 502 Bad Gateway if the payment provider rejects the request.
            - 500 Internal Server Error for any unexpected exception.
    """
    try:
        repo = OrderRepository(
            user=user,
            order_data=order_data,
            async_session=async_session,
            payment_gateway=payment_gateway,
            stripe_settings=get_stripe_settings(),
        )
        service = OrderService(repo)
        return await service.create_order()
    except HTTPException:
        raise
    except IntegrityError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"An error occurred: {str(e.orig)}",
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Payment provider error: {e.user_message or str(e)}",
        )
    except Exception as e:
        logger.exception("Unexpected error while placing an order")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred: {str(e)}",
        )


@router.get(
    "/all-orders",
    response_model=GenericResponse,
    status_code=status.HTTP_200_OK,
)
async def get_all_orders(
    admin: Annotated[User, Security(get_current_active_user, scopes=["admin"])],
    query: Annotated[QueryParams, Depends(get_query_params)],
    async_session: Annotated[AsyncSession, Depends(get_async_db)],
) -> GenericResponse:
    """
    List every order with its user and ordered books.

    Query parameters: `page`, `limit`, `sortBy` (prefix `-` for descending),
    `sortOrder` (also flips the default newest-first order), `searchTerm`, `fields`,
    `minPrice`/`maxPrice` on the order amount, and any order column for an exact
    match (e.g. `paymentStatus=PAID`).
    """
    try:
        repo = OrderRepository(async_session=async_session, query=query)
        service = OrderService(repo)
        return await service.list_all_orders()
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Unexpected error while listing orders")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred: {str(e)}",
        )


@router.get(
    "/my-orders",
    response_model=GenericResponse,
    status_code=status.HTTP_200_OK,
)
async def get_my_orders(
    user: Annotated[User, Depends(get_current_active_user)],
    query: Annotated[QueryParams, Depends(get_query_params)],
    async_session: Annotated[AsyncSession, Depends(get_async_db)],
) -> GenericResponse:
    """List the paid orders of the authenticated user; same query parameters as `/all-orders`."""
    try:
        repo = OrderRepository(
            async_session=async_session, query=query, user_email=user.email
        )
        service = OrderService(repo)
        return await service.list_my_orders()
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Unexpected error while listing orders of %s", user.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred: {str(e)}",
        )

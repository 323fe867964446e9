from book_orders.repositories.order_repository import OrderRepository
from book_orders.schemas.order_schema import OrderPlaceSuccessfully
from book_orders.schemas.query_schemas import GenericResponse


class OrderService:
    """
    Service layer for book orders.

    Delegates persistence, checkout and listing to the OrderRepository the
    route built for the current request.

    Attributes:
        repository (OrderRepository): Repository bound to the request's session, user and query.
    """

    def __init__(self, repository: OrderRepository):
        self.repository = repository

    async def create_order(self) -> OrderPlaceSuccessfully:
        return await self.repository.place_order()

    async def list_all_orders(self) -> GenericResponse:
        return await self.repository.fetch_all_orders()

    async def list_my_orders(self) -> GenericResponse:
        return await self.repository.fetch_my_orders()

from abc import ABC, abstractmethod


class AbstractOrderInterface(ABC):
    """
    Abstract base class for defining the interface of an order system.

    Any class that inherits from this interface must implement:
        place_order(): Persist a new order and open a checkout session for it.
        fetch_all_orders(): Return every order, filtered and paginated.
        fetch_my_orders(): Return the paid orders of the current user.
    """

    @abstractmethod
    def place_order(self) -> None:
        pass

    @abstractmethod
    def fetch_all_orders(self) -> None:
        pass

    @abstractmethod
    def fetch_my_orders(self) -> None:
        pass

from abc import ABC, abstractmethod


class ClientInterface(ABC):
    """Base interface for SDK-backed clients that hold connections.

    Implementations establish their connection in :meth:`load` and release it
    in :meth:`close`.
    """

    @abstractmethod
    async def load(self):
        """Establish the client connection."""

    @abstractmethod
    async def close(self):
        """Close the client connection and release its resources."""

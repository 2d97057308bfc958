"""Abstract base class for request transports."""

from abc import ABC, abstractmethod

from api_script_runner.models.response import ActualResponse, PreparedRequest


class Transport(ABC):
    """Executes one rendered request and returns the actual response."""

    @abstractmethod
    async def send(self, request: PreparedRequest, timeout: float) -> ActualResponse:
        """Send a request.

        Args:
            request: Fully rendered request
            timeout: Upper bound in seconds for this single call

        Returns:
            The response, whatever its status code

        Raises:
            TransportError: If no response could be obtained
            TimeoutError: If the call exceeded ``timeout``

        """

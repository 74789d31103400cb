"""Email channel port: abstract interface for sending order emails."""

from abc import ABC, abstractmethod


class EmailPort(ABC):
    """Abstract interface for email dispatch adapters."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str, tags: dict | None = None) -> dict:
        """Send a plain-text email.

        `tags` is adapter metadata (template kind, order number) used for
        delivery tracking; adapters may ignore it.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...

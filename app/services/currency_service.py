"""
Exchange rate lookup used to display catalog prices in another currency.
Lookup failures never fail a catalog fetch; callers fall back to 1:1.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import httpx
import structlog

from app.config import settings
from app.integrations.errors import (
    RemotePlatformError,
    classify_status,
    describe_request_error,
)
from app.utils.http import parse_json_body

logger = structlog.get_logger()


class RateLookup(ABC):
    """Source of spot exchange rates."""

    @abstractmethod
    async def rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Return how many units of to_currency one unit of from_currency buys.

        Raises:
            BrokerError: If the rate cannot be determined
        """
        pass


class ExchangeRateService(RateLookup):
    """Spot rates from an open exchange-rate HTTP API."""

    def __init__(
        self,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.api_url = api_url or settings.exchange_rate_api_url
        self.transport = transport
        self.timeout = timeout or settings.probe_timeout_seconds

    async def rate(self, from_currency: str, to_currency: str) -> Decimal:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return Decimal("1")

        url = self.api_url.format(base=from_currency)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(url)
            except httpx.RequestError as e:
                raise describe_request_error(e) from e

        if not response.is_success:
            raise classify_status(response.status_code, response.text, settings.error_body_max_chars)

        body = parse_json_body(response)
        rates = body.get("rates") if isinstance(body, dict) else None
        if not isinstance(rates, dict) or to_currency not in rates:
            raise RemotePlatformError(f"No exchange rate for {from_currency}->{to_currency}")
        try:
            return Decimal(str(rates[to_currency]))
        except InvalidOperation as e:
            raise RemotePlatformError(f"Invalid exchange rate for {from_currency}->{to_currency}") from e

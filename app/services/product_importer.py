"""
Remote product importer.

Publishes camouflaged copies of catalog items into the merchant's Shopify
store in two phases (camouflage image, then product creation). Batches run
sequentially, one item at a time, so the destination's per-merchant rate
limits are respected and a shared image is uploaded at most once.
"""

import asyncio
import hashlib
from collections.abc import Sequence
from contextlib import asynccontextmanager

import httpx
import structlog

from app.config import settings
from app.integrations.errors import (
    BrokerError,
    ErrorKind,
    InvalidInputError,
    RemotePlatformError,
)
from app.integrations.shopify.api_client import ShopifyAPIClient
from app.integrations.shopify.transformer import ImageReference, ShopifyTransformer
from app.models.broker import (
    BatchFailure,
    BatchSummary,
    ImportOutcome,
    ImportRequest,
    Platform,
)
from app.models.database import Integration, LogLevel
from app.services.activity_logger import ActivityLogger
from app.services.credential_store import CredentialStore

logger = structlog.get_logger()

SOURCE = "IMPORTER"

INLINE_STRATEGY = "inline"
PLACEHOLDER_STRATEGY = "placeholder"

# Failures that stop a batch: every later item would be rejected the same way
TERMINAL_KINDS = (ErrorKind.INVALID_CREDENTIALS, ErrorKind.INSUFFICIENT_PERMISSIONS)


class ImportBatch:
    """
    State shared by the items of one batch: the destination credentials
    loaded at batch start, one API client, and the uploaded camouflage assets.
    A batch with no client runs in demo mode.
    """

    def __init__(
        self,
        activity: ActivityLogger,
        merchant_id: str,
        integration: Integration | None = None,
        client: ShopifyAPIClient | None = None,
        image_strategy: str = INLINE_STRATEGY,
        secret_values: list[str] | None = None,
    ):
        self.activity = activity
        self.merchant_id = merchant_id
        self.integration = integration
        self.client = client
        self.image_strategy = image_strategy
        self.secret_values = secret_values or []
        self._assets: dict[str, ImageReference] = {}
        self._asset_lock = asyncio.Lock()

    @property
    def is_demo(self) -> bool:
        return self.client is None

    async def image_reference(self, image_bytes: bytes) -> ImageReference:
        """
        Return the reference to attach to a product, uploading the image
        first when the placeholder strategy is in use.
        """
        if self.image_strategy != PLACEHOLDER_STRATEGY:
            return ImageReference.inline(image_bytes)

        digest = hashlib.sha256(image_bytes).hexdigest()
        # One upload-and-delete sequence per image per batch
        async with self._asset_lock:
            if digest not in self._assets:
                self._assets[digest] = await self._upload_via_placeholder(image_bytes)
            return self._assets[digest]

    async def _upload_via_placeholder(self, image_bytes: bytes) -> ImageReference:
        placeholder = ShopifyTransformer.build_placeholder(ImageReference.inline(image_bytes))
        created = await self.client.create_product(placeholder.to_payload())
        # Logged so a reconciliation sweep can find orphans if the delete never runs
        self.activity.info(
            SOURCE,
            "Created image placeholder product",
            details={"placeholderProductId": str(created.id)},
            merchant_id=self.merchant_id,
        )

        src = next((image.src for image in created.images if image.src), None)
        try:
            await self.client.delete_product(created.id)
        except BrokerError as e:
            self.activity.warning(
                SOURCE,
                "Failed to delete image placeholder product",
                details={
                    "placeholderProductId": str(created.id),
                    "errorKind": e.kind.value,
                    "error": e.detail,
                },
                merchant_id=self.merchant_id,
                secret_values=self.secret_values,
            )

        if not src:
            raise RemotePlatformError("Shopify did not return an image URL for the uploaded image")
        return ImageReference(src=src)


class RemoteProductImporter:
    """Camouflaged product creation in the destination store."""

    def __init__(
        self,
        credential_store: CredentialStore,
        activity: ActivityLogger,
        transport: httpx.AsyncBaseTransport | None = None,
        image_strategy: str | None = None,
        demo_fallback_enabled: bool | None = None,
    ):
        self.credential_store = credential_store
        self.activity = activity
        self.transport = transport
        self.image_strategy = image_strategy or settings.camouflage_image_strategy
        if demo_fallback_enabled is None:
            demo_fallback_enabled = settings.demo_fallback_enabled
        self.demo_fallback_enabled = demo_fallback_enabled

    @asynccontextmanager
    async def open_batch(self, merchant_id: str, integration_id: str | None = None):
        """
        Resolve the destination integration and load its credentials once.
        Credentials saved while the batch runs are not observed.

        Yields:
            ImportBatch (demo mode when no destination integration exists)

        Raises:
            BrokerError: Credentials could not be loaded
        """
        integration = self._resolve_integration(merchant_id, integration_id)
        if integration is None:
            self.activity.warning(
                SOURCE,
                "No active Shopify integration, running in demo mode",
                merchant_id=merchant_id,
            )
            yield ImportBatch(self.activity, merchant_id)
            return

        bundle = self.credential_store.load_secrets(str(integration.id))
        async with ShopifyAPIClient(
            bundle.base_url,
            bundle.secret("accessToken"),
            transport=self.transport,
        ) as client:
            yield ImportBatch(
                self.activity,
                merchant_id,
                integration=integration,
                client=client,
                image_strategy=self.image_strategy,
                secret_values=bundle.secret_values(),
            )

    async def import_item(
        self,
        merchant_id: str,
        request: ImportRequest,
        integration_id: str | None = None,
    ) -> ImportOutcome:
        """
        Import one catalog item.

        Args:
            merchant_id: Owning merchant
            request: Catalog item plus camouflage title and image
            integration_id: Shopify integration; defaults to the merchant's active one

        Returns:
            ImportOutcome; never raises for remote, storage or input failures
        """
        try:
            async with self.open_batch(merchant_id, integration_id) as batch:
                return await self.import_in_batch(batch, request)
        except BrokerError as e:
            return self._failed(merchant_id, request.item.sku, e)

    async def import_batch(
        self,
        merchant_id: str,
        requests: Sequence[ImportRequest],
        integration_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchSummary:
        """
        Import items sequentially. A failing item does not stop the rest,
        except a credential or permission rejection, after which the remaining
        items are reported failed with the same kind without being sent. Once
        cancel_event is set, the item in flight completes and no further
        items are started.

        Returns:
            BatchSummary with per-item outcomes in request order
        """
        summary = BatchSummary(total=len(requests))
        self.activity.info(
            SOURCE,
            f"Starting batch import of {len(requests)} item(s)",
            details={"skus": [r.item.sku for r in requests]},
            merchant_id=merchant_id,
        )

        try:
            async with self.open_batch(merchant_id, integration_id) as batch:
                for index, request in enumerate(requests):
                    if cancel_event is not None and cancel_event.is_set():
                        summary.cancelled = True
                        summary.skipped = len(requests) - index
                        self.activity.warning(
                            SOURCE,
                            "Batch import cancelled",
                            details={"skipped": summary.skipped},
                            merchant_id=merchant_id,
                        )
                        break
                    outcome = await self._import_guarded(batch, request)
                    self._record(summary, outcome)
                    if outcome.error_kind in TERMINAL_KINDS:
                        # Remaining items would be rejected the same way
                        for remaining in requests[index + 1:]:
                            self._record(
                                summary,
                                self._not_attempted(merchant_id, remaining.item.sku, outcome),
                            )
                        break
        except BrokerError as e:
            # Batch setup failed: every item not yet attempted fails with the same error
            for request in requests[len(summary.outcomes):]:
                self._record(summary, self._failed(merchant_id, request.item.sku, e))

        self.activity.log(
            _summary_level(summary),
            SOURCE,
            f"Batch import finished: {summary.succeeded} succeeded, {summary.failed} failed",
            details={
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "failedSkus": [f.sku for f in summary.failures],
            },
            merchant_id=merchant_id,
        )
        return summary

    async def import_in_batch(self, batch: ImportBatch, request: ImportRequest) -> ImportOutcome:
        """Run both phases for one item inside an open batch."""
        sku = request.item.sku
        self.activity.info(
            SOURCE,
            f"Importing {sku}",
            details={"sku": sku, "camouflageTitle": request.camouflage_title},
            merchant_id=batch.merchant_id,
        )

        if batch.is_demo:
            self.activity.success(
                SOURCE,
                f"Imported {sku} (demo mode, nothing was sent)",
                details={"sku": sku, "demoMode": True},
                merchant_id=batch.merchant_id,
            )
            return ImportOutcome(success=True, sku=sku, used_demo_fallback=True)

        try:
            image = await batch.image_reference(request.camouflage_image_bytes)
            product = ShopifyTransformer.build_product(request, image)
            created = await batch.client.create_product(product.to_payload())
        except BrokerError as e:
            return self._failed(batch.merchant_id, sku, e, batch.secret_values)

        self.activity.success(
            SOURCE,
            f"Imported {sku} as \"{request.camouflage_title}\"",
            details={"sku": sku, "remoteProductId": str(created.id)},
            merchant_id=batch.merchant_id,
        )
        return ImportOutcome(success=True, sku=sku, remote_product_id=str(created.id))

    async def _import_guarded(self, batch: ImportBatch, request: ImportRequest) -> ImportOutcome:
        try:
            return await self.import_in_batch(batch, request)
        except BrokerError:
            raise
        except Exception as e:
            logger.exception("Unexpected error importing item", sku=request.item.sku)
            return self._failed(
                batch.merchant_id,
                request.item.sku,
                RemotePlatformError(f"Unexpected error ({type(e).__name__})"),
            )

    def _resolve_integration(self, merchant_id: str, integration_id: str | None) -> Integration | None:
        if integration_id:
            integration = self.credential_store.table.get_by_id(integration_id)
            if integration is None or integration.user_id != merchant_id:
                raise InvalidInputError(f"Integration not found: {integration_id}")
            if integration.platform is not Platform.SHOPIFY:
                raise InvalidInputError("Integration is not a Shopify integration")
            if integration.is_active:
                return integration
        else:
            integration = self.credential_store.get_active(merchant_id, Platform.SHOPIFY)
            if integration is not None:
                return integration

        if not self.demo_fallback_enabled:
            raise InvalidInputError("No active Shopify integration found")
        return None

    def _failed(
        self,
        merchant_id: str,
        sku: str,
        error: BrokerError,
        secret_values: list[str] | None = None,
    ) -> ImportOutcome:
        self.activity.error(
            SOURCE,
            f"Failed to import {sku}",
            details={"sku": sku, "errorKind": error.kind.value, "error": error.detail},
            merchant_id=merchant_id,
            secret_values=secret_values or [],
        )
        return ImportOutcome(
            success=False,
            sku=sku,
            error_message=error.detail,
            error_kind=error.kind,
        )

    def _not_attempted(self, merchant_id: str, sku: str, cause: ImportOutcome) -> ImportOutcome:
        self.activity.error(
            SOURCE,
            f"Skipped {sku} after a credential failure",
            details={"sku": sku, "errorKind": cause.error_kind.value, "causeSku": cause.sku},
            merchant_id=merchant_id,
        )
        return ImportOutcome(
            success=False,
            sku=sku,
            error_message=cause.error_message,
            error_kind=cause.error_kind,
        )

    @staticmethod
    def _record(summary: BatchSummary, outcome: ImportOutcome) -> None:
        summary.outcomes.append(outcome)
        if outcome.success:
            summary.succeeded += 1
            summary.used_demo_fallback = summary.used_demo_fallback or outcome.used_demo_fallback
        else:
            summary.failed += 1
            summary.failures.append(
                BatchFailure(
                    sku=outcome.sku or "",
                    error_kind=outcome.error_kind,
                    error_message=outcome.error_message,
                )
            )


def _summary_level(summary: BatchSummary) -> LogLevel:
    if summary.failed == 0:
        return LogLevel.SUCCESS
    if summary.succeeded == 0:
        return LogLevel.ERROR
    return LogLevel.WARNING

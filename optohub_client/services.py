from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

import requests

from optohub_client.apis import AdminApi, AnalyticsApi, AppointmentsApi, ProductsApi
from optohub_client.apis.products_api import ImageInput
from optohub_client.auth import TokenStore
from optohub_client.cache import ResponseCache
from optohub_client.config import ClientSettings
from optohub_client.errors import OptoHubError, RequestFailedError, RequestTimeoutError
from optohub_client.http import HttpClient, is_database_unavailable_payload
from optohub_client.models import AuthState, BatchRequest, BatchResult, ConnectionState
from optohub_client.monitor import ConnectionListener, ConnectionMonitor
from optohub_client.offline import OfflineStore

logger = logging.getLogger(__name__)


class OptoHubService:
    """Single client object handed to every consumer of the backend.

    Reads of the main admin collections fall back to the offline snapshot
    when the backend cannot be reached or reports its database as down.
    """

    def __init__(
        self,
        http_client: HttpClient,
        admin_api: AdminApi,
        products_api: ProductsApi,
        appointments_api: AppointmentsApi,
        analytics_api: AnalyticsApi,
        offline_store: OfflineStore,
    ):
        self._http_client = http_client
        self._monitor = http_client.monitor
        self._admin_api = admin_api
        self._products_api = products_api
        self._appointments_api = appointments_api
        self._analytics_api = analytics_api
        self._offline_store = offline_store

    def start(self) -> None:
        self._monitor.start()

    def close(self) -> None:
        self._monitor.close()
        self._http_client.close()

    # Auth

    def auth_state(self) -> AuthState:
        return self._http_client.token_store.auth_state()

    def login(self, username: str, password: str) -> dict[str, Any]:
        return self._admin_api.login(username, password)

    def logout(self) -> None:
        self._admin_api.logout()

    def get_profile(self) -> dict[str, Any]:
        return self._admin_api.get_profile()

    def update_profile(self, profile: dict[str, Any]) -> dict[str, Any]:
        return self._admin_api.update_profile(profile)

    def get_dashboard(self) -> dict[str, Any]:
        return self._admin_api.get_dashboard()

    def get_settings(self) -> dict[str, Any]:
        return self._read_with_offline_fallback("settings", "settings", self._admin_api.get_settings)

    def update_settings(self, settings: dict[str, Any]) -> dict[str, Any]:
        return self._admin_api.update_settings(settings)

    # Products

    def get_products(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        if filters:
            return self._products_api.get_products(filters)
        return self._read_with_offline_fallback("products", "products", self._products_api.get_products)

    def get_product(self, product_id: str) -> dict[str, Any] | None:
        return self._products_api.get_product(product_id)

    def get_brands(self) -> dict[str, Any]:
        return self._products_api.get_brands()

    def create_product(
        self,
        product: dict[str, Any],
        images: Iterable[ImageInput] | None = None,
    ) -> dict[str, Any]:
        return self._products_api.create_product(product, images)

    def update_product(
        self,
        product_id: str,
        product: dict[str, Any],
        images: Iterable[ImageInput] | None = None,
    ) -> dict[str, Any]:
        return self._products_api.update_product(product_id, product, images)

    def delete_product(self, product_id: str) -> dict[str, Any]:
        return self._products_api.delete_product(product_id)

    def get_product_stats(self) -> dict[str, Any]:
        return self._products_api.get_product_stats()

    def bulk_import_products(self, products: list[dict[str, Any]]) -> dict[str, Any]:
        return self._products_api.bulk_import_products(products)

    def bulk_import_inventory(self, inventory_items: list[dict[str, Any]]) -> dict[str, Any]:
        return self._products_api.bulk_import_inventory(inventory_items)

    # Appointments

    def get_appointments(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        if filters:
            return self._appointments_api.get_appointments(filters)
        return self._read_with_offline_fallback(
            "appointments",
            "appointments",
            self._appointments_api.get_appointments,
        )

    def get_appointment(self, appointment_id: str) -> dict[str, Any]:
        return self._appointments_api.get_appointment(appointment_id)

    def create_appointment(self, appointment: dict[str, Any]) -> dict[str, Any]:
        return self._appointments_api.create_appointment(appointment)

    def update_appointment_status(self, appointment_id: str, status: str) -> dict[str, Any]:
        return self._appointments_api.update_appointment_status(appointment_id, status)

    def delete_appointment(self, appointment_id: str) -> dict[str, Any]:
        return self._appointments_api.delete_appointment(appointment_id)

    def get_appointment_stats(self) -> dict[str, Any]:
        return self._appointments_api.get_appointment_stats()

    # Analytics

    def track_visitor(self, visitor: dict[str, Any]) -> dict[str, Any]:
        return self._analytics_api.track_visitor(visitor)

    def get_analytics_stats(self, period: str | int = "30") -> dict[str, Any]:
        return self._read_with_offline_fallback(
            "analytics",
            None,
            lambda: self._analytics_api.get_analytics_stats(period),
        )

    def get_visitor_timeline(self, period: str | int = "7") -> dict[str, Any]:
        return self._analytics_api.get_visitor_timeline(period)

    def get_page_analytics(self, period: str | int = "30") -> dict[str, Any]:
        return self._analytics_api.get_page_analytics(period)

    # Connectivity

    def health_check(self) -> dict[str, Any]:
        return self._http_client.request("/health", use_cache=False)

    def is_connected(self) -> bool:
        return self._monitor.is_connected()

    def is_offline(self) -> bool:
        return self._monitor.offline_mode

    def get_connection_status(self) -> ConnectionState:
        return self._monitor.snapshot(cache_size=len(self._http_client.cache))

    def reconnect(self) -> bool:
        return self._monitor.reconnect()

    def subscribe(self, listener: ConnectionListener) -> Callable[[], None]:
        return self._monitor.subscribe(listener)

    def subscribe_auth_required(self, listener: Callable[[int], None]) -> Callable[[], None]:
        return self._http_client.subscribe_auth_required(listener)

    def clear_cache(self) -> None:
        self._http_client.clear_cache()

    # Offline snapshot

    def get_offline_data(self) -> dict[str, Any] | None:
        return self._offline_store.load()

    def save_offline_data(self, data: dict[str, Any]) -> None:
        self._offline_store.save(data)

    def batch_request(self, requests_payload: Iterable[BatchRequest]) -> BatchResult:
        batch = BatchResult()
        for item in requests_payload:
            batch.total += 1
            try:
                result = self._http_client.request(
                    item.endpoint,
                    method=item.method,
                    json_body=item.json_body,
                )
            except OptoHubError as exc:
                batch.errors.append({"success": False, "error": str(exc), "request": item})
                continue
            batch.results.append({"success": True, "data": result, "request": item})
        return batch

    def _read_with_offline_fallback(
        self,
        section: str,
        key: str | None,
        fetch: Callable[[], Any],
    ) -> Any:
        try:
            payload = fetch()
        except (RequestFailedError, RequestTimeoutError):
            offline = self._offline_payload(section, key)
            if offline is None:
                raise
            logger.info("Backend unreachable, serving %s from the offline snapshot", section)
            return offline

        if is_database_unavailable_payload(payload):
            offline = self._offline_payload(section, key)
            if offline is not None:
                logger.info("Database not available, serving %s from the offline snapshot", section)
                return offline
            return payload

        if isinstance(payload, dict):
            if key is None:
                self._offline_store.update_section(section, payload)
            elif key in payload:
                self._offline_store.update_section(section, payload[key])
        return payload

    def _offline_payload(self, section: str, key: str | None) -> dict[str, Any] | None:
        cached = self._offline_store.get_section(section)
        if cached is None:
            return None
        if key is None:
            if not isinstance(cached, dict):
                return None
            return {**cached, "offline": True}
        return {"success": True, key: cached, "offline": True}


def build_service(
    settings: ClientSettings | None = None,
    start_monitoring: bool = True,
) -> OptoHubService:
    settings = settings or ClientSettings.from_env()
    monitor = ConnectionMonitor(settings)
    http_client = HttpClient(
        settings,
        token_store=TokenStore(settings.token_path),
        monitor=monitor,
        cache=ResponseCache(settings.cache_timeout_seconds),
        session=requests.Session(),
    )
    service = OptoHubService(
        http_client=http_client,
        admin_api=AdminApi(http_client),
        products_api=ProductsApi(http_client),
        appointments_api=AppointmentsApi(http_client),
        analytics_api=AnalyticsApi(http_client),
        offline_store=OfflineStore(settings.offline_data_path),
    )
    if start_monitoring:
        service.start()
    return service

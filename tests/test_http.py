"""Tests for the request layer: caching, retry policy and failure handling."""

from dataclasses import replace

import pytest
import requests

from conftest import BASE_URL, make_response
from optohub_client.errors import (
    ApiHttpError,
    AuthenticationError,
    BackendErrorCategory,
    DatabaseUnavailableError,
    RequestFailedError,
    RequestTimeoutError,
)
from optohub_client.http import HttpClient
from optohub_client.models import ConnectionStatus


PRODUCTS = {"success": True, "products": [{"id": "prod_1", "name": "Aviator"}], "count": 1}


class TestResponseCaching:
    """GET responses are cached and served without a network call."""

    def test_products_cached_under_method_endpoint_key(self, http_client, session):
        session.request.return_value = make_response(200, PRODUCTS)

        first = http_client.request("/products")
        second = http_client.request("/products")

        assert first == PRODUCTS
        assert second is first
        assert session.request.call_count == 1
        assert "GET:/products:" in http_client.cache

    def test_cache_entry_expires_after_ttl(self, http_client, session, clock, settings):
        session.request.side_effect = [
            make_response(200, {"n": 1}),
            make_response(200, {"n": 2}),
        ]

        http_client.request("/products")
        clock.advance(settings.cache_timeout_seconds + 1)

        assert http_client.request("/products") == {"n": 2}
        assert session.request.call_count == 2

    def test_offline_mode_bypasses_fresh_cache(self, http_client, session, monitor):
        session.request.side_effect = [
            make_response(200, {"n": 1}),
            make_response(200, {"n": 2}),
        ]
        http_client.request("/products")
        monitor.mark_disconnected()

        assert http_client.request("/products") == {"n": 2}
        assert session.request.call_count == 2

    def test_clear_cache_forces_network_call(self, http_client, session):
        session.request.side_effect = [
            make_response(200, {"n": 1}),
            make_response(200, {"n": 2}),
        ]
        http_client.request("/products")

        http_client.clear_cache()

        assert http_client.request("/products") == {"n": 2}
        assert session.request.call_count == 2

    def test_mutations_are_not_cached(self, http_client, session):
        session.request.return_value = make_response(201, {"success": True})

        http_client.request("/appointments", method="POST", json_body={"name": "Ana"})
        http_client.request("/appointments", method="POST", json_body={"name": "Ana"})

        assert session.request.call_count == 2
        assert len(http_client.cache) == 0

    def test_use_cache_false_skips_cache(self, http_client, session):
        session.request.return_value = make_response(200, {"status": "OK"})

        http_client.request("/health", use_cache=False)
        http_client.request("/health", use_cache=False)

        assert session.request.call_count == 2
        assert len(http_client.cache) == 0

    def test_empty_success_body_returns_empty_dict(self, http_client, session):
        session.request.return_value = make_response(204)

        assert http_client.request("/products/p1", method="DELETE") == {}


class TestRetryPolicy:
    """Server errors and timeouts retry with exponential backoff; 4xx never does."""

    def test_client_error_fails_after_one_attempt(self, http_client, session, sleeps):
        session.request.return_value = make_response(400, {"error": "Missing required fields"})

        with pytest.raises(ApiHttpError) as exc_info:
            http_client.request("/products", method="POST", json_body={})

        assert exc_info.value.status_code == 400
        assert str(exc_info.value).startswith("HTTP 400:")
        assert session.request.call_count == 1
        assert sleeps == []

    def test_not_found_is_not_retried(self, http_client, session, sleeps):
        session.request.return_value = make_response(404, {"error": "Product not found"})

        with pytest.raises(ApiHttpError):
            http_client.request("/products/missing")

        assert session.request.call_count == 1
        assert sleeps == []

    def test_server_errors_exhaust_retries_with_growing_delay(self, http_client, session, sleeps, monitor):
        session.request.return_value = make_response(500, {"error": "Internal server error"})

        with pytest.raises(RequestFailedError) as exc_info:
            http_client.request("/appointments/stats/summary")

        assert session.request.call_count == 4
        assert exc_info.value.attempts == 4
        assert sleeps == [1.0, 2.0, 4.0]
        assert monitor.status == ConnectionStatus.DISCONNECTED
        assert monitor.offline_mode is True

    def test_timeouts_raise_request_timeout_error(self, http_client, session, sleeps):
        session.request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(RequestTimeoutError) as exc_info:
            http_client.request("/products")

        assert session.request.call_count == 4
        assert exc_info.value.attempts == 4
        assert sleeps == [1.0, 2.0, 4.0]

    def test_recovers_when_a_retry_succeeds(self, http_client, session, sleeps, monitor):
        session.request.side_effect = [
            make_response(502, text="Bad Gateway"),
            make_response(200, PRODUCTS),
        ]

        assert http_client.request("/products") == PRODUCTS
        assert sleeps == [1.0]
        assert monitor.status == ConnectionStatus.CONNECTED

    def test_post_network_errors_raise_after_four_attempts(self, http_client, session):
        session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(RequestFailedError) as exc_info:
            http_client.request("/appointments", method="POST", json_body={"name": "Ana"})

        assert session.request.call_count == 4
        assert isinstance(exc_info.value.last_error, requests.ConnectionError)

    def test_zero_retries_means_single_attempt(self, settings, token_store, monitor, session, sleeps):
        client = HttpClient(
            replace(settings, max_retries=0),
            token_store=token_store,
            monitor=monitor,
            session=session,
            sleep=sleeps.append,
        )
        session.request.return_value = make_response(503, text="unavailable")

        with pytest.raises(RequestFailedError):
            client.request("/products")

        assert session.request.call_count == 1
        assert sleeps == []

    def test_non_json_success_body_is_retried_then_fails(self, http_client, session, sleeps, monitor):
        session.request.return_value = make_response(200, text="<!doctype html><html></html>")

        with pytest.raises(RequestFailedError) as exc_info:
            http_client.request("/products")

        assert session.request.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]
        assert isinstance(exc_info.value.last_error, ValueError)
        assert monitor.offline_mode is True
        assert "GET:/products:" not in http_client.cache

    def test_non_json_success_body_recovers_on_retry(self, http_client, session, sleeps):
        session.request.side_effect = [
            make_response(200, text="<!doctype html>"),
            make_response(200, PRODUCTS),
        ]

        assert http_client.request("/products") == PRODUCTS
        assert sleeps == [1.0]


class TestStaleCacheFallback:
    """Reads fall back to any cached value, even expired, once retries run out."""

    def test_expired_entry_returned_after_exhausted_retries(self, http_client, session, clock, settings):
        session.request.side_effect = [make_response(200, PRODUCTS)] + [
            requests.ConnectionError("down")
        ] * 4

        http_client.request("/products")
        clock.advance(settings.cache_timeout_seconds * 2)

        assert http_client.request("/products") == PRODUCTS
        assert session.request.call_count == 5

    def test_cached_value_returned_when_offline_and_failing(self, http_client, session, monitor):
        session.request.side_effect = [make_response(200, PRODUCTS)] + [
            make_response(500, text="boom")
        ] * 4
        http_client.request("/products")
        monitor.mark_disconnected()

        assert http_client.request("/products") == PRODUCTS

    def test_expired_entry_returned_when_body_is_not_json(self, http_client, session, clock, settings):
        session.request.side_effect = [make_response(200, PRODUCTS)] + [
            make_response(200, text="<!doctype html>")
        ] * 4

        http_client.request("/products")
        clock.advance(settings.cache_timeout_seconds + 1)

        assert http_client.request("/products") == PRODUCTS

    def test_no_cache_means_error(self, http_client, session):
        session.request.side_effect = requests.ConnectionError("down")

        with pytest.raises(RequestFailedError):
            http_client.request("/products")


class TestDatabaseUnavailable:
    """Backend storage outages degrade reads and fail writes without retrying."""

    def test_settings_read_returns_synthetic_payload(self, http_client, session, sleeps):
        session.request.return_value = make_response(
            500, {"message": "MongoDB connection failed: querySrv EREFUSED"}
        )

        result = http_client.request("/admin/settings")

        assert result == {"success": True, "settings": {}, "message": "Database not available"}
        assert session.request.call_count == 1
        assert sleeps == []

    def test_structured_category_is_honoured(self, http_client, session):
        session.request.return_value = make_response(
            503, {"category": "database_unavailable", "error": "storage offline"}
        )

        result = http_client.request("/products")

        assert result["success"] is True
        assert result["message"] == "Database not available"

    def test_synthetic_payload_is_not_cached(self, http_client, session):
        session.request.return_value = make_response(500, {"message": "MongoDB down"})

        http_client.request("/admin/settings")

        assert len(http_client.cache) == 0

    def test_write_raises_without_retry(self, http_client, session, sleeps):
        session.request.return_value = make_response(500, {"message": "MongoDB down"})

        with pytest.raises(DatabaseUnavailableError) as exc_info:
            http_client.request("/appointments", method="POST", json_body={"name": "Ana"})

        assert exc_info.value.category == BackendErrorCategory.DATABASE_UNAVAILABLE
        assert session.request.call_count == 1
        assert sleeps == []

    def test_plain_server_error_is_still_retried(self, http_client, session):
        session.request.return_value = make_response(500, {"error": "Failed to fetch products"})

        with pytest.raises(RequestFailedError):
            http_client.request("/products")

        assert session.request.call_count == 4


class TestAuthentication:
    """401/403 clears credentials, notifies listeners and still raises."""

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failure_clears_token_and_propagates(self, http_client, session, token_store, status_code):
        token_store.set("jwt-token", "admin")
        notified = []
        http_client.subscribe_auth_required(notified.append)
        session.request.return_value = make_response(status_code, {"error": "Invalid or expired token"})

        with pytest.raises(AuthenticationError) as exc_info:
            http_client.request("/admin/settings", method="PUT", json_body={"site_name": "x"})

        assert exc_info.value.status_code == status_code
        assert token_store.token is None
        assert notified == [status_code]
        assert session.request.call_count == 1

    def test_auth_failure_does_not_change_connection_status(self, http_client, session, monitor):
        monitor.mark_connected()
        session.request.return_value = make_response(401, {"error": "Access token required"})

        with pytest.raises(AuthenticationError):
            http_client.request("/admin/profile")

        assert monitor.status == ConnectionStatus.CONNECTED

    def test_unsubscribed_listener_not_called(self, http_client, session):
        notified = []
        unsubscribe = http_client.subscribe_auth_required(notified.append)
        unsubscribe()
        session.request.return_value = make_response(401, {"error": "Access token required"})

        with pytest.raises(AuthenticationError):
            http_client.request("/admin/profile")

        assert notified == []


class TestRequestShaping:
    def test_bearer_token_and_json_content_type(self, http_client, session, token_store):
        token_store.set("jwt-token", "admin")
        session.request.return_value = make_response(200, {"success": True})

        http_client.request("/admin/settings", method="PUT", json_body={"site_name": "Opto"})

        args, kwargs = session.request.call_args
        assert args == ("PUT", f"{BASE_URL}/admin/settings")
        assert kwargs["headers"]["Authorization"] == "Bearer jwt-token"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["json"] == {"site_name": "Opto"}
        assert kwargs["timeout"] == 10.0

    def test_multipart_leaves_content_type_to_requests(self, http_client, session):
        session.request.return_value = make_response(201, {"id": "prod_1"})

        http_client.request(
            "/products",
            method="POST",
            data={"name": "Aviator"},
            files=[("images", ("a.jpg", b"jpeg", "image/jpeg"))],
        )

        kwargs = session.request.call_args.kwargs
        assert "Content-Type" not in kwargs["headers"]
        assert "Authorization" not in kwargs["headers"]
        assert kwargs["data"] == {"name": "Aviator"}

    def test_success_marks_connected_and_notifies_once(self, http_client, session, monitor):
        events = []
        monitor.subscribe(events.append)
        session.request.return_value = make_response(200, PRODUCTS)

        http_client.request("/products")
        http_client.request("/products/brands")

        assert monitor.status == ConnectionStatus.CONNECTED
        assert [event.status for event in events] == [ConnectionStatus.CONNECTED]

    def test_exhausted_retries_emit_disconnected_event(self, http_client, session, monitor):
        events = []
        monitor.subscribe(events.append)
        session.request.side_effect = requests.ConnectionError("down")

        with pytest.raises(RequestFailedError):
            http_client.request("/products")

        assert [event.status for event in events] == [ConnectionStatus.DISCONNECTED]

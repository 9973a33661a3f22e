from __future__ import annotations

from typing import Any

from optohub_client.apis.query import with_query
from optohub_client.http import HttpClient


class AnalyticsApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def track_visitor(self, visitor: dict[str, Any]) -> dict[str, Any]:
        return self._http_client.request("/analytics/track", method="POST", json_body=visitor)

    def get_analytics_stats(self, period: str | int = "30") -> dict[str, Any]:
        return self._http_client.request(with_query("/analytics/stats", {"period": period}))

    def get_visitor_timeline(self, period: str | int = "7") -> dict[str, Any]:
        return self._http_client.request(with_query("/analytics/timeline", {"period": period}))

    def get_page_analytics(self, period: str | int = "30") -> dict[str, Any]:
        return self._http_client.request(with_query("/analytics/pages", {"period": period}))

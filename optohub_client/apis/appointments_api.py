from __future__ import annotations

from typing import Any

from optohub_client.apis.query import with_query
from optohub_client.http import HttpClient

APPOINTMENT_STATUSES = ("pending", "confirmed", "completed", "cancelled")


class AppointmentsApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def get_appointments(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._http_client.request(with_query("/appointments", filters))

    def get_appointment(self, appointment_id: str) -> dict[str, Any]:
        return self._http_client.request(f"/appointments/{appointment_id}")

    def create_appointment(self, appointment: dict[str, Any]) -> dict[str, Any]:
        return self._http_client.request("/appointments", method="POST", json_body=appointment)

    def update_appointment_status(self, appointment_id: str, status: str) -> dict[str, Any]:
        normalized = status.strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError(
                "Appointment status must be one of: " + ", ".join(APPOINTMENT_STATUSES)
            )
        return self._http_client.request(
            f"/appointments/{appointment_id}",
            method="PUT",
            json_body={"status": normalized},
        )

    def delete_appointment(self, appointment_id: str) -> dict[str, Any]:
        return self._http_client.request(f"/appointments/{appointment_id}", method="DELETE")

    def get_appointment_stats(self) -> dict[str, Any]:
        return self._http_client.request("/appointments/stats/summary")

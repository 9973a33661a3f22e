from __future__ import annotations

from datetime import datetime
import json
import threading
import traceback

import customtkinter as ctk

from optohub_client.apis.appointments_api import APPOINTMENT_STATUSES
from optohub_client.config import ClientSettings, ConfigurationError
from optohub_client.logging_utils import configure_logging
from optohub_client.models import ConnectionStatus
from optohub_client.services import OptoHubService, build_service

STATUS_COLORS = {
	ConnectionStatus.CONNECTED: "#2e9e5b",
	ConnectionStatus.DISCONNECTED: "#d14343",
	ConnectionStatus.ERROR: "#d98c1f",
	ConnectionStatus.UNKNOWN: "#8a8a8a",
}


class MainWindow(ctk.CTk):
	def __init__(self, service: OptoHubService, settings: ClientSettings):
		super().__init__()
		self._service = service
		self.title("Monica Opto Hub: Admin Console")
		self.geometry("1100x800")
		self.minsize(960, 700)

		header = ctk.CTkFrame(self)
		header.pack(fill="x", padx=16, pady=(16, 8))

		self._status_label = ctk.CTkLabel(header, text="Not signed in")
		self._status_label.pack(side="left", padx=8, pady=8)

		self._connection_label = ctk.CTkLabel(header, text="Backend: unknown")
		self._connection_label.pack(side="right", padx=8, pady=8)

		self._request_progress_label = ctk.CTkLabel(self, text="")
		self._request_progress_label.pack(anchor="w", padx=16, pady=(0, 4))

		self._request_progress_bar = ctk.CTkProgressBar(self)
		self._request_progress_bar.pack(fill="x", padx=16, pady=(0, 8))
		self._request_progress_bar.set(0)

		# Worst case for one call: every attempt runs into the timeout.
		self._progress_active = False
		self._progress_total_seconds = max(
			1,
			int(settings.timeout_seconds * (settings.max_retries + 1)),
		)
		self._progress_elapsed_seconds = 0.0
		self._progress_update_interval_seconds = 0.1
		self._set_progress_idle()

		action_row = ctk.CTkFrame(self)
		action_row.pack(fill="x", padx=16, pady=(0, 8))

		self._username_entry = ctk.CTkEntry(action_row, placeholder_text="Username", width=160)
		self._username_entry.pack(side="left", padx=(8, 6), pady=8)

		self._password_entry = ctk.CTkEntry(action_row, placeholder_text="Password", show="*", width=160)
		self._password_entry.pack(side="left", padx=6, pady=8)

		self._sign_in_btn = ctk.CTkButton(action_row, text="Sign in", command=self._sign_in)
		self._sign_in_btn.pack(side="left", padx=6, pady=8)

		self._sign_out_btn = ctk.CTkButton(action_row, text="Sign out", command=self._sign_out)
		self._sign_out_btn.pack(side="left", padx=6, pady=8)

		ctk.CTkButton(action_row, text="Clear cache", command=self._clear_cache).pack(
			side="right", padx=(6, 8), pady=8
		)
		self._reconnect_btn = ctk.CTkButton(action_row, text="Reconnect", command=self._reconnect)
		self._reconnect_btn.pack(side="right", padx=6, pady=8)

		self._tabview = ctk.CTkTabview(self)
		self._tabview.pack(fill="both", expand=True, padx=16, pady=(0, 16))

		self._tabview.add("Products")
		self._tabview.add("Appointments")
		self._tabview.add("Settings")

		products_tab = self._tabview.tab("Products")
		products_row = ctk.CTkFrame(products_tab)
		products_row.pack(fill="x", padx=12, pady=(12, 6))
		self._products_brand = ctk.CTkEntry(products_row, placeholder_text="Brand filter (optional)")
		self._products_brand.pack(side="left", fill="x", expand=True, padx=(8, 6), pady=8)
		ctk.CTkButton(products_row, text="Load Products", command=self._load_products).pack(
			side="left", padx=(6, 8), pady=8
		)
		self._products_formatted_output, self._products_output = self._create_output_panes(
			products_tab,
			height=420,
		)

		appointments_tab = self._tabview.tab("Appointments")
		appointments_row = ctk.CTkFrame(appointments_tab)
		appointments_row.pack(fill="x", padx=12, pady=(12, 6))
		ctk.CTkButton(
			appointments_row,
			text="Load Appointments",
			command=self._load_appointments,
		).pack(side="left", padx=(8, 6), pady=8)
		self._appointment_id = ctk.CTkEntry(appointments_row, placeholder_text="Appointment id")
		self._appointment_id.pack(side="left", fill="x", expand=True, padx=6, pady=8)
		self._appointment_status = ctk.StringVar(value=APPOINTMENT_STATUSES[1])
		ctk.CTkSegmentedButton(
			appointments_row,
			values=list(APPOINTMENT_STATUSES),
			variable=self._appointment_status,
		).pack(side="left", padx=6, pady=8)
		ctk.CTkButton(
			appointments_row,
			text="Update Status",
			command=self._update_appointment_status,
		).pack(side="left", padx=(6, 8), pady=8)
		self._appointments_formatted_output, self._appointments_output = self._create_output_panes(
			appointments_tab,
			height=420,
		)

		settings_tab = self._tabview.tab("Settings")
		ctk.CTkButton(settings_tab, text="Load Settings", command=self._load_settings).pack(
			anchor="w", padx=12, pady=(12, 6)
		)
		self._settings_formatted_output, self._settings_output = self._create_output_panes(
			settings_tab,
			height=460,
		)

		self._unsubscribe_connection = self._service.subscribe(
			lambda event: self.after(0, lambda: self._render_connection(event.status))
		)
		self._unsubscribe_auth = self._service.subscribe_auth_required(
			lambda status_code: self.after(0, lambda: self._on_auth_required(status_code))
		)
		self.protocol("WM_DELETE_WINDOW", self._on_close)

		self._render_connection(self._service.get_connection_status().status)
		self._refresh_auth_state()

	def _run_in_background(
		self,
		formatted_widget: ctk.CTkTextbox,
		raw_widget: ctk.CTkTextbox,
		call,
		formatter,
	):
		self._render_output(formatted_widget, "Running request...")
		self._render_output(raw_widget, "Running request...")
		self._start_request_progress()

		def worker():
			try:
				response = call()
				raw_rendered = json.dumps(response, indent=2, default=str)
				formatted_rendered = formatter(response)
			except Exception as exc:
				raw_rendered = f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}"
				formatted_rendered = f"{type(exc).__name__}: {exc}"

			self.after(
				0,
				lambda: self._render_dual_output(
					formatted_widget,
					raw_widget,
					formatted_rendered,
					raw_rendered,
				),
			)
			self.after(0, self._stop_request_progress)

		threading.Thread(target=worker, daemon=True).start()

	def _set_progress_idle(self):
		self._request_progress_label.configure(
			text=f"Request budget: {self._progress_total_seconds}s (all retries)"
		)
		self._request_progress_bar.set(0)

	def _start_request_progress(self):
		self._progress_active = True
		self._progress_elapsed_seconds = 0.0
		self._request_progress_bar.set(0)
		self._tick_request_progress()

	def _tick_request_progress(self):
		if not self._progress_active:
			return

		self._progress_elapsed_seconds += self._progress_update_interval_seconds
		progress = min(1.0, self._progress_elapsed_seconds / self._progress_total_seconds)
		self._request_progress_bar.set(progress)
		self._request_progress_label.configure(
			text=(
				f"Request in progress: {self._progress_elapsed_seconds:.1f}s / "
				f"{self._progress_total_seconds}s"
			)
		)

		self.after(
			int(self._progress_update_interval_seconds * 1000),
			self._tick_request_progress,
		)

	def _stop_request_progress(self):
		self._progress_active = False
		self._set_progress_idle()

	def _create_output_panes(self, parent, height: int):
		container = ctk.CTkFrame(parent)
		container.pack(fill="both", expand=True, padx=12, pady=(4, 12))
		container.grid_columnconfigure(0, weight=1)
		container.grid_columnconfigure(1, weight=1)
		container.grid_rowconfigure(1, weight=1)

		ctk.CTkLabel(container, text="Summary").grid(
			row=0, column=0, sticky="w", padx=(8, 6), pady=(8, 4)
		)
		ctk.CTkLabel(container, text="Raw JSON").grid(
			row=0, column=1, sticky="w", padx=(6, 8), pady=(8, 4)
		)

		formatted_widget = ctk.CTkTextbox(container, height=height)
		formatted_widget.grid(row=1, column=0, sticky="nsew", padx=(8, 6), pady=(0, 8))

		raw_widget = ctk.CTkTextbox(container, height=height)
		raw_widget.grid(row=1, column=1, sticky="nsew", padx=(6, 8), pady=(0, 8))

		return formatted_widget, raw_widget

	def _render_dual_output(
		self,
		formatted_widget: ctk.CTkTextbox,
		raw_widget: ctk.CTkTextbox,
		formatted_text: str,
		raw_text: str,
	):
		self._render_output(formatted_widget, formatted_text)
		self._render_output(raw_widget, raw_text)

	@staticmethod
	def _render_output(text_widget: ctk.CTkTextbox, text: str):
		text_widget.delete("1.0", "end")
		text_widget.insert("1.0", text)

	def _render_connection(self, status: ConnectionStatus):
		state = self._service.get_connection_status()
		suffix = " (offline mode)" if state.offline_mode else ""
		self._connection_label.configure(
			text=f"Backend: {status.value}{suffix} | cached responses: {state.cache_size}",
			text_color=STATUS_COLORS.get(status, STATUS_COLORS[ConnectionStatus.UNKNOWN]),
		)

	def _load_products(self):
		brand = self._products_brand.get().strip()
		filters = {"brand": brand} if brand else None
		self._run_in_background(
			self._products_formatted_output,
			self._products_output,
			lambda: self._service.get_products(filters),
			self._format_products,
		)

	def _load_appointments(self):
		self._run_in_background(
			self._appointments_formatted_output,
			self._appointments_output,
			self._service.get_appointments,
			self._format_appointments,
		)

	def _update_appointment_status(self):
		appointment_id = self._appointment_id.get().strip()
		if not appointment_id:
			self._render_output(self._appointments_formatted_output, "Appointment id is required.")
			return

		status = self._appointment_status.get()
		self._run_in_background(
			self._appointments_formatted_output,
			self._appointments_output,
			lambda: self._service.update_appointment_status(appointment_id, status),
			lambda response: f"Appointment {appointment_id} marked {status}.",
		)

	def _load_settings(self):
		self._run_in_background(
			self._settings_formatted_output,
			self._settings_output,
			self._service.get_settings,
			self._format_settings,
		)

	@staticmethod
	def _offline_note(response: dict[str, object]) -> str:
		if isinstance(response, dict) and response.get("offline"):
			return "Backend unreachable, showing offline data.\n\n"
		return ""

	@staticmethod
	def _format_products(response: dict[str, object]) -> str:
		products = response.get("products") if isinstance(response, dict) else None
		if not isinstance(products, list) or not products:
			return MainWindow._offline_note(response) + "No products found."

		lines = []
		for product in products:
			if not isinstance(product, dict):
				continue
			name = str(product.get("name", "")).strip() or "(unnamed)"
			brand = str(product.get("brand", "")).strip()
			price = product.get("price")
			flags = [flag for flag in ("featured", "trending") if product.get(flag)]
			line = f"{brand} {name}".strip()
			if price is not None:
				line += f" | {price}"
			if flags:
				line += f" [{', '.join(flags)}]"
			lines.append(line)
		return MainWindow._offline_note(response) + "\n".join(lines)

	@staticmethod
	def _format_appointments(response: dict[str, object]) -> str:
		appointments = response.get("appointments") if isinstance(response, dict) else None
		if not isinstance(appointments, list) or not appointments:
			return MainWindow._offline_note(response) + "No appointments found."

		lines = []
		for appointment in appointments:
			if not isinstance(appointment, dict):
				continue
			when = " ".join(
				str(appointment.get(key, "")).strip()
				for key in ("preferred_date", "preferred_time")
			).strip() or "no date"
			name = str(appointment.get("name", "")).strip() or "(no name)"
			status = str(appointment.get("status", "pending")).strip()
			lines.append(f"{when} | {name} | {status}")
		return MainWindow._offline_note(response) + "\n".join(lines)

	@staticmethod
	def _format_settings(response: dict[str, object]) -> str:
		settings = response.get("settings") if isinstance(response, dict) else None
		if not isinstance(settings, dict) or not settings:
			return MainWindow._offline_note(response) + "No settings stored."
		lines = [f"{key}: {value}" for key, value in sorted(settings.items())]
		return MainWindow._offline_note(response) + "\n".join(lines)

	def _refresh_auth_state(self):
		state = self._service.auth_state()
		if state.is_signed_in:
			self._status_label.configure(text=f"Signed in as {state.username or 'admin'}")
			self._set_auth_button_state(is_signed_in=True)
		else:
			self._status_label.configure(text="Not signed in")
			self._set_auth_button_state(is_signed_in=False)

	def _set_auth_button_state(self, is_signed_in: bool):
		if is_signed_in:
			self._sign_in_btn.configure(state="disabled")
			self._sign_out_btn.configure(state="normal")
			return

		self._sign_in_btn.configure(state="normal")
		self._sign_out_btn.configure(state="disabled")

	def _on_auth_required(self, status_code: int):
		self._refresh_auth_state()
		stamp = datetime.now().strftime("%H:%M:%S")
		self._status_label.configure(
			text=f"Session expired (HTTP {status_code} at {stamp}). Sign in again."
		)

	def _sign_in(self):
		username = self._username_entry.get().strip()
		password = self._password_entry.get()
		self._status_label.configure(text="Signing in...")
		self._sign_in_btn.configure(state="disabled")

		def worker():
			try:
				self._service.login(username, password)
				state = self._service.auth_state()
				text = f"Signed in as {state.username or username}"
				is_signed_in = state.is_signed_in
			except Exception as exc:
				text = f"Sign in failed: {exc}"
				is_signed_in = False

			self.after(
				0,
				lambda: (
					self._status_label.configure(text=text),
					self._set_auth_button_state(is_signed_in=is_signed_in),
					self._password_entry.delete(0, "end"),
				),
			)

		threading.Thread(target=worker, daemon=True).start()

	def _sign_out(self):
		def worker():
			try:
				self._service.logout()
				text = "Not signed in"
			except Exception as exc:
				text = f"Signed out locally ({exc})"

			self.after(
				0,
				lambda: (
					self._status_label.configure(text=text),
					self._set_auth_button_state(is_signed_in=False),
				),
			)

		threading.Thread(target=worker, daemon=True).start()

	def _reconnect(self):
		self._reconnect_btn.configure(state="disabled")

		def worker():
			self._service.reconnect()
			self.after(
				0,
				lambda: (
					self._render_connection(self._service.get_connection_status().status),
					self._reconnect_btn.configure(state="normal"),
				),
			)

		threading.Thread(target=worker, daemon=True).start()

	def _clear_cache(self):
		self._service.clear_cache()
		self._render_connection(self._service.get_connection_status().status)

	def _on_close(self):
		self._unsubscribe_connection()
		self._unsubscribe_auth()
		self._service.close()
		self.destroy()


def run_app() -> None:
	configure_logging()
	ctk.set_appearance_mode("System")
	ctk.set_default_color_theme("blue")

	try:
		settings = ClientSettings.from_env()
		service = build_service(settings)
	except ConfigurationError as exc:
		app = ctk.CTk()
		app.title("Opto Hub Admin Console - Configuration Error")
		app.geometry("760x360")
		message = ctk.CTkTextbox(app)
		message.pack(fill="both", expand=True, padx=16, pady=16)
		message.insert(
			"1.0",
			"Configuration error. Fix the environment variables and restart:\n\n"
			f"{exc}\n\n"
			"Common settings:\n"
			"- OPTOHUB_BASE_URL or OPTOHUB_ORIGIN\n"
			"- OPTOHUB_TIMEOUT_SECONDS\n"
			"- OPTOHUB_MAX_RETRIES\n",
		)
		app.mainloop()
		return

	window = MainWindow(service, settings)
	window.mainloop()

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any, Iterable, Union

from optohub_client.apis.query import with_query
from optohub_client.errors import ApiHttpError
from optohub_client.http import HttpClient

# Upload limits enforced by the backend's image handler.
MAX_IMAGES_PER_UPLOAD = 10
MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_EXTENSIONS = (".jpeg", ".jpg", ".png", ".gif", ".webp")

ImageInput = Union[str, Path, tuple[str, bytes]]


class ProductsApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def get_products(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._http_client.request(with_query("/products", filters))

    def get_product(self, product_id: str) -> dict[str, Any] | None:
        try:
            return self._http_client.request(f"/products/{product_id}")
        except ApiHttpError as exc:
            if exc.status_code == 404:
                return None
            raise

    def get_brands(self) -> dict[str, Any]:
        return self._http_client.request("/products/brands")

    def create_product(
        self,
        product: dict[str, Any],
        images: Iterable[ImageInput] | None = None,
    ) -> dict[str, Any]:
        return self._http_client.request(
            "/products",
            method="POST",
            data=self._build_form_fields(product),
            files=self._build_image_parts(images) or None,
        )

    def update_product(
        self,
        product_id: str,
        product: dict[str, Any],
        images: Iterable[ImageInput] | None = None,
    ) -> dict[str, Any]:
        return self._http_client.request(
            f"/products/{product_id}",
            method="PUT",
            data=self._build_form_fields(product),
            files=self._build_image_parts(images) or None,
        )

    def delete_product(self, product_id: str) -> dict[str, Any]:
        return self._http_client.request(f"/products/{product_id}", method="DELETE")

    def get_product_stats(self) -> dict[str, Any]:
        return self._http_client.request("/products/stats/summary")

    def bulk_import_products(self, products: list[dict[str, Any]]) -> dict[str, Any]:
        return self._http_client.request(
            "/products/bulk",
            method="POST",
            json_body={"products": products},
        )

    def bulk_import_inventory(self, inventory_items: list[dict[str, Any]]) -> dict[str, Any]:
        return self._http_client.request(
            "/products/inventory",
            method="POST",
            json_body={"inventoryItems": inventory_items},
        )

    @staticmethod
    def _build_form_fields(product: dict[str, Any]) -> dict[str, str]:
        fields: dict[str, str] = {}
        for key, value in product.items():
            if value is None:
                continue
            if isinstance(value, bool):
                fields[key] = "true" if value else "false"
            elif isinstance(value, (list, dict)):
                fields[key] = json.dumps(value)
            else:
                fields[key] = str(value)
        return fields

    @staticmethod
    def _build_image_parts(images: Iterable[ImageInput] | None) -> list[tuple[str, tuple[str, bytes, str]]]:
        if not images:
            return []

        parts: list[tuple[str, tuple[str, bytes, str]]] = []
        for image in images:
            if isinstance(image, tuple):
                file_name, content = image
            else:
                path = Path(image)
                file_name, content = path.name, path.read_bytes()

            extension = Path(file_name).suffix.lower()
            if extension not in ALLOWED_IMAGE_EXTENSIONS:
                raise ValueError(f"Only image files are allowed: {file_name}")
            if len(content) > MAX_IMAGE_BYTES:
                raise ValueError(f"Image exceeds the 5MB upload limit: {file_name}")

            content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
            parts.append(("images", (file_name, content, content_type)))

        if len(parts) > MAX_IMAGES_PER_UPLOAD:
            raise ValueError(f"At most {MAX_IMAGES_PER_UPLOAD} images can be uploaded at once")
        return parts

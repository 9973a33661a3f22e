from .admin_api import AdminApi
from .products_api import ProductsApi
from .appointments_api import AppointmentsApi
from .analytics_api import AnalyticsApi

__all__ = ["AdminApi", "ProductsApi", "AppointmentsApi", "AnalyticsApi"]

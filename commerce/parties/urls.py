from django.urls import path
from .views import (
    customer_profile, address_list_create, address_detail, customer_dashboard,
    customer_list, customer_export,
)

urlpatterns = [
    # Customer self-service endpoints
    path('customer/profile/', customer_profile, name='customer-profile'),
    path('customer/addresses/', address_list_create, name='address-list-create'),
    path('customer/addresses/<int:pk>/', address_detail, name='address-detail'),
    path('customer/dashboard/', customer_dashboard, name='customer-dashboard'),

    # Admin endpoints
    path('customers/', customer_list, name='customer-list'),
    path('customers/export/', customer_export, name='customer-export'),
]

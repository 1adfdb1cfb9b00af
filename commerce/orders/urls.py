from django.urls import path
from . import views

urlpatterns = [
    path('checkout/', views.checkout, name='checkout'),
    path('customer/orders/', views.my_order_list, name='my-order-list'),
    path('customer/orders/<str:code>/', views.my_order_detail, name='my-order-detail'),
    path('admin/orders/', views.admin_order_list, name='admin-order-list'),
    path('admin/orders/export/', views.admin_order_export, name='admin-order-export'),
    path('admin/orders/bulk-status/', views.admin_order_bulk_status, name='admin-order-bulk-status'),
    path('admin/orders/<int:pk>/', views.admin_order_detail, name='admin-order-detail'),
    path('admin/orders/<int:pk>/status/', views.admin_order_status, name='admin-order-status'),
    path('admin/orders/<int:pk>/payments/', views.admin_order_payments, name='admin-order-payments'),
    path('admin/orders/<int:pk>/shipping/', views.admin_order_shipping, name='admin-order-shipping'),
    path('admin/orders/<int:pk>/notes/', views.admin_order_notes, name='admin-order-notes'),
    path('admin/orders/<int:pk>/release-stock/', views.admin_order_release_stock, name='admin-order-release-stock'),
]

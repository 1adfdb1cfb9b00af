from django.urls import path
from .views import (
    inventory_list, inventory_export, inventory_reorder_bulk, inventory_quick_adjust, movement_list,
    warehouse_list_create, warehouse_detail, warehouse_locations,
    document_list_create, document_detail, document_post, document_void,
    warehouse_overview,
)

urlpatterns = [
    # Inventory endpoints
    path('inventory/', inventory_list, name='inventory-list'),
    path('inventory/export/', inventory_export, name='inventory-export'),
    path('inventory/reorder/', inventory_reorder_bulk, name='inventory-reorder'),
    path('inventory/adjust/', inventory_quick_adjust, name='inventory-quick-adjust'),
    path('inventory/movements/', movement_list, name='movement-list'),

    # Warehouse endpoints
    path('warehouses/', warehouse_list_create, name='warehouse-list-create'),
    path('warehouses/<int:pk>/', warehouse_detail, name='warehouse-detail'),
    path('warehouses/<int:pk>/locations/', warehouse_locations, name='warehouse-locations'),

    # Stock document endpoints
    path('warehouse/docs/', document_list_create, name='document-list-create'),
    path('warehouse/docs/<int:pk>/', document_detail, name='document-detail'),
    path('warehouse/docs/<int:pk>/post/', document_post, name='document-post'),
    path('warehouse/docs/<int:pk>/void/', document_void, name='document-void'),
    path('warehouse/overview/', warehouse_overview, name='warehouse-overview'),
]

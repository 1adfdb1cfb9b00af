from django.urls import path
from . import views

urlpatterns = [
    path('coupons/apply/', views.coupon_apply, name='coupon-apply'),
    path('admin/coupons/', views.coupon_list_create, name='coupon-list-create'),
    path('admin/coupons/<int:pk>/', views.coupon_detail, name='coupon-detail'),
]

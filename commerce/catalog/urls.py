from django.urls import path
from .views import (
    category_list_create, category_detail,
    industry_list, industry_detail,
    product_list_create, product_by_slug, product_detail, product_export,
    global_search,
    review_list_create, review_stats, review_vote, review_report,
    admin_review_list, admin_review_moderate,
)

urlpatterns = [
    # Category endpoints
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),

    # Industry endpoints
    path('industries/', industry_list, name='industry-list'),
    path('industries/<slug:slug>/', industry_detail, name='industry-detail'),

    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/export/', product_export, name='product-export'),
    path('products/<slug:slug>/', product_by_slug, name='product-by-slug'),
    path('admin/products/<int:pk>/', product_detail, name='product-detail'),

    path('search/', global_search, name='global-search'),

    # Review endpoints
    path('reviews/', review_list_create, name='review-list-create'),
    path('reviews/stats/', review_stats, name='review-stats'),
    path('reviews/<int:pk>/vote/', review_vote, name='review-vote'),
    path('reviews/<int:pk>/report/', review_report, name='review-report'),
    path('admin/reviews/', admin_review_list, name='admin-review-list'),
    path('admin/reviews/<int:pk>/moderate/', admin_review_moderate, name='admin-review-moderate'),
]

from django.urls import path
from . import views

urlpatterns = [
    path('blog/posts/', views.post_list, name='blog-post-list'),
    path('blog/posts/<slug:slug>/', views.post_by_slug, name='blog-post-detail'),
    path('blog/categories/', views.blog_category_list, name='blog-category-list'),
    path('services/', views.service_list, name='service-list'),
    path('services/<slug:slug>/', views.service_detail, name='service-detail'),
    path('contact/', views.contact_submit, name='contact-submit'),
    path('admin/blog/posts/', views.admin_post_list_create, name='admin-post-list-create'),
    path('admin/blog/posts/bulk/', views.admin_post_bulk, name='admin-post-bulk'),
    path('admin/blog/posts/<int:pk>/', views.admin_post_detail, name='admin-post-detail'),
    path('admin/blog/posts/<int:pk>/publish/', views.admin_post_publish, name='admin-post-publish'),
    path('admin/blog/posts/<int:pk>/schedule/', views.admin_post_schedule, name='admin-post-schedule'),
    path('admin/blog/posts/<int:pk>/archive/', views.admin_post_archive, name='admin-post-archive'),
    path('admin/blog/posts/<int:pk>/revisions/', views.admin_post_revisions, name='admin-post-revisions'),
    path('admin/contacts/', views.admin_contact_list, name='admin-contact-list'),
    path('admin/contacts/<int:pk>/', views.admin_contact_detail, name='admin-contact-detail'),
]

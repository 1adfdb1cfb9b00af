from django.contrib import admin
from .models import BlogCategory, BlogPost, BlogPostRevision, Service, ContactMessage


@admin.register(BlogCategory)
class BlogCategoryAdmin(admin.ModelAdmin):
    list_display = ['name_en', 'name_vi', 'slug', 'sort_order']
    search_fields = ['name_en', 'name_vi', 'slug']
    prepopulated_fields = {'slug': ('name_en',)}
    ordering = ['sort_order', 'name_en']


class BlogPostRevisionInline(admin.TabularInline):
    model = BlogPostRevision
    extra = 0
    readonly_fields = ['editor', 'snapshot', 'created_at']
    can_delete = False


@admin.register(BlogPost)
class BlogPostAdmin(admin.ModelAdmin):
    list_display = ['title_en', 'slug', 'status', 'category', 'author', 'is_featured', 'published_at', 'view_count']
    list_filter = ['status', 'is_featured', 'category', 'published_at']
    search_fields = ['title_en', 'title_vi', 'slug']
    ordering = ['-updated_at']
    inlines = [BlogPostRevisionInline]
    readonly_fields = ['view_count', 'created_at', 'updated_at']


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ['title_en', 'slug', 'sort_order', 'is_active']
    list_filter = ['is_active']
    search_fields = ['title_en', 'title_vi', 'slug']
    prepopulated_fields = {'slug': ('title_en',)}
    ordering = ['sort_order']


@admin.register(ContactMessage)
class ContactMessageAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'company', 'subject', 'status', 'created_at']
    list_filter = ['status', 'locale', 'created_at']
    search_fields = ['name', 'email', 'company', 'subject', 'message']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']

from django.contrib import admin
from .models import Category, Industry, Product, ProductReview, ReviewVote, ReviewReport


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name_vi', 'name_en', 'slug', 'parent', 'sort_order', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name_en', 'name_vi', 'slug']
    prepopulated_fields = {'slug': ('name_en',)}
    ordering = ['sort_order', 'name_vi']


@admin.register(Industry)
class IndustryAdmin(admin.ModelAdmin):
    list_display = ['name_en', 'name_vi', 'slug', 'sort_order', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name_en', 'name_vi', 'slug']
    ordering = ['sort_order', 'name_en']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name_en', 'sku', 'category', 'price', 'stock_quantity', 'is_active', 'is_featured', 'created_at']
    list_filter = ['is_active', 'is_featured', 'category', 'industries', 'created_at']
    search_fields = ['name_en', 'name_vi', 'sku']
    filter_horizontal = ['industries']
    ordering = ['name_en']
    readonly_fields = ['stock_quantity', 'created_at', 'updated_at']


class ReviewReportInline(admin.TabularInline):
    model = ReviewReport
    extra = 0
    readonly_fields = ['user', 'reason', 'details', 'created_at']


@admin.register(ProductReview)
class ProductReviewAdmin(admin.ModelAdmin):
    list_display = ['product', 'user', 'overall_rating', 'status', 'is_verified_purchase',
                    'helpful_count', 'report_count', 'created_at']
    list_filter = ['status', 'overall_rating', 'is_verified_purchase', 'created_at']
    search_fields = ['product__sku', 'product__name_en', 'user__username', 'title', 'content']
    ordering = ['-created_at']
    readonly_fields = ['helpful_count', 'not_helpful_count', 'report_count', 'created_at', 'updated_at']
    inlines = [ReviewReportInline]


@admin.register(ReviewVote)
class ReviewVoteAdmin(admin.ModelAdmin):
    list_display = ['review', 'user', 'is_helpful', 'created_at']
    list_filter = ['is_helpful']

import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Storefront and admin product filter using django-filter"""

    q = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(method='filter_category', label='Category slug or ID')
    industry = django_filters.CharFilter(method='filter_industry', label='Industry slug or ID')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock', label='In Stock')
    featured = django_filters.BooleanFilter(field_name='is_featured')
    active = django_filters.BooleanFilter(field_name='is_active')

    class Meta:
        model = Product
        fields = ['q', 'category', 'industry', 'min_price', 'max_price', 'in_stock', 'featured', 'active']

    def filter_search(self, queryset, name, value):
        """Match SKU or either language's name; every word must match somewhere"""
        if not value or not value.strip():
            return queryset
        search = value.strip()
        condition = (
            Q(sku__icontains=search) | Q(name_en__icontains=search) | Q(name_vi__icontains=search)
        )
        words = search.split()
        if len(words) > 1:
            all_words = Q()
            for word in words:
                all_words &= Q(name_en__icontains=word) | Q(name_vi__icontains=word) | Q(sku__icontains=word)
            condition |= all_words
        return queryset.filter(condition)

    def filter_category(self, queryset, name, value):
        if not value:
            return queryset
        if value.isdigit():
            return queryset.filter(category_id=int(value))
        return queryset.filter(category__slug=value)

    def filter_industry(self, queryset, name, value):
        if not value:
            return queryset
        if value.isdigit():
            return queryset.filter(industries__id=int(value)).distinct()
        return queryset.filter(industries__slug=value).distinct()

    def filter_in_stock(self, queryset, name, value):
        if value is None:
            return queryset
        if value:
            return queryset.filter(stock_quantity__gt=0)
        return queryset.filter(stock_quantity__lte=0)


PRODUCT_SORTS = {
    'newest': ['-created_at', '-id'],
    'price_asc': ['price', 'id'],
    'price_desc': ['-price', '-id'],
    'name': ['name_en', 'id'],
}


def apply_product_sort(queryset, sort):
    return queryset.order_by(*PRODUCT_SORTS.get(sort or 'newest', PRODUCT_SORTS['newest']))

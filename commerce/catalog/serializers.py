from django.utils.text import slugify
from rest_framework import serializers

from commerce.core.i18n import localized
from .models import Category, Industry, Product, ProductReview


class LocalizedFieldsMixin:
    """Adds `name`/`description` in the request locale next to the raw _en/_vi fields"""

    def _locale(self):
        return self.context.get('locale', 'vi')

    def get_name(self, obj):
        return localized(obj, 'name', self._locale())

    def get_description(self, obj):
        return localized(obj, 'description', self._locale())


class CategorySerializer(LocalizedFieldsMixin, serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    slug = serializers.SlugField(required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'name_en', 'name_vi', 'slug', 'description_en', 'description_vi',
                  'parent', 'sort_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        if not attrs.get('slug') and not (self.instance and self.instance.slug):
            attrs['slug'] = slugify(attrs.get('name_en') or attrs.get('name_vi') or '')
        return attrs


class IndustrySerializer(LocalizedFieldsMixin, serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    description = serializers.SerializerMethodField()
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Industry
        fields = ['id', 'slug', 'name', 'description', 'name_en', 'name_vi', 'description_en', 'description_vi',
                  'icon', 'image', 'sort_order', 'is_active', 'product_count']


class ProductListSerializer(LocalizedFieldsMixin, serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    short_description = serializers.SerializerMethodField()
    category_slug = serializers.CharField(source='category.slug', read_only=True, default=None)
    image = serializers.CharField(source='primary_image', read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'sku', 'slug', 'name', 'name_en', 'name_vi', 'short_description', 'category',
                  'category_slug', 'price', 'currency', 'unit', 'min_order_qty', 'stock_quantity',
                  'image', 'is_featured']

    def get_short_description(self, obj):
        return localized(obj, 'short_description', self._locale())


class ProductDetailSerializer(ProductListSerializer):
    description = serializers.SerializerMethodField()
    category = CategorySerializer(read_only=True)
    industries = IndustrySerializer(many=True, read_only=True)

    class Meta(ProductListSerializer.Meta):
        fields = ProductListSerializer.Meta.fields + ['description', 'industries', 'specs', 'images']


class ProductWriteSerializer(serializers.ModelSerializer):
    slug = serializers.SlugField(required=False)

    class Meta:
        model = Product
        fields = ['id', 'sku', 'slug', 'name_en', 'name_vi', 'short_description_en', 'short_description_vi',
                  'description_en', 'description_vi', 'category', 'industries', 'price', 'cost_price',
                  'currency', 'unit', 'min_order_qty', 'specs', 'images', 'is_active', 'is_featured',
                  'stock_quantity', 'created_at', 'updated_at']
        read_only_fields = ['stock_quantity', 'created_at', 'updated_at']

    def validate_sku(self, value):
        return value.strip().upper()

    def validate_images(self, value):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise serializers.ValidationError('images must be a list of URLs')
        return value

    def validate(self, attrs):
        if not attrs.get('slug') and not (self.instance and self.instance.slug):
            base = slugify(attrs.get('name_en') or attrs.get('sku') or '')
            attrs['slug'] = base or slugify(attrs.get('sku', ''))
        min_order_qty = attrs.get('min_order_qty')
        if min_order_qty is not None and min_order_qty <= 0:
            raise serializers.ValidationError({'min_order_qty': 'Must be greater than 0'})
        return attrs


class ReviewSerializer(serializers.ModelSerializer):
    reviewer_name = serializers.SerializerMethodField()
    my_vote = serializers.SerializerMethodField()

    class Meta:
        model = ProductReview
        fields = ['id', 'product', 'reviewer_name', 'overall_rating', 'quality_rating', 'value_rating',
                  'title', 'content', 'pros', 'cons', 'is_anonymous', 'is_verified_purchase', 'status',
                  'helpful_count', 'not_helpful_count', 'seller_response', 'responded_at', 'my_vote',
                  'created_at']

    def get_reviewer_name(self, obj):
        if obj.is_anonymous:
            return 'Anonymous'
        return obj.user.get_full_name() or obj.user.username

    def get_my_vote(self, obj):
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return None
        vote = next((v for v in obj.votes.all() if v.user_id == request.user.id), None)
        return None if vote is None else vote.is_helpful


class ReviewCreateSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    order = serializers.IntegerField(required=False, allow_null=True)
    overall_rating = serializers.IntegerField(min_value=1, max_value=5)
    quality_rating = serializers.IntegerField(min_value=0, max_value=5, required=False, allow_null=True)
    value_rating = serializers.IntegerField(min_value=0, max_value=5, required=False, allow_null=True)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    content = serializers.CharField(min_length=20, max_length=5000)
    pros = serializers.CharField(max_length=500, required=False, allow_blank=True)
    cons = serializers.CharField(max_length=500, required=False, allow_blank=True)
    is_anonymous = serializers.BooleanField(default=False)


class ReviewVoteSerializer(serializers.Serializer):
    is_helpful = serializers.BooleanField()


class ReviewReportSerializer(serializers.Serializer):
    reason = serializers.ChoiceField(choices=['spam', 'inappropriate', 'fake', 'other'])
    details = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class ReviewModerationSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['APPROVED', 'REJECTED', 'PENDING'])
    seller_response = serializers.CharField(max_length=2000, required=False, allow_blank=True)

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product groups shown in the storefront menu"""
    name_en = models.CharField(max_length=200)
    name_vi = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True)
    description_en = models.TextField(blank=True)
    description_vi = models.TextField(blank=True)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name_vi or self.name_en

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['sort_order', 'name_vi']


class Industry(models.Model):
    """Industry landing pages grouping products by use case"""
    slug = models.SlugField(max_length=220, unique=True)
    name_en = models.CharField(max_length=200)
    name_vi = models.CharField(max_length=200)
    description_en = models.TextField(blank=True)
    description_vi = models.TextField(blank=True)
    icon = models.CharField(max_length=100, blank=True)
    image = models.URLField(blank=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name_en

    class Meta:
        db_table = 'industries'
        verbose_name_plural = 'industries'
        ordering = ['sort_order', 'name_en']


class Product(models.Model):
    """Product master"""
    UNIT_CHOICES = [
        ('pcs', 'Piece'),
        ('set', 'Set'),
        ('box', 'Box'),
        ('kg', 'Kilogram'),
        ('m', 'Metre'),
        ('roll', 'Roll'),
    ]

    sku = models.CharField(max_length=100, unique=True, db_index=True)
    slug = models.SlugField(max_length=220, unique=True)
    name_en = models.CharField(max_length=255)
    name_vi = models.CharField(max_length=255, db_index=True)
    short_description_en = models.CharField(max_length=500, blank=True)
    short_description_vi = models.CharField(max_length=500, blank=True)
    description_en = models.TextField(blank=True)
    description_vi = models.TextField(blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    industries = models.ManyToManyField(Industry, blank=True, related_name='products')
    # Null price means "contact for price"
    price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True,
                                validators=[MinValueValidator(Decimal('0'))])
    cost_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'),
                                     validators=[MinValueValidator(Decimal('0'))])
    currency = models.CharField(max_length=3, default='VND')
    unit = models.CharField(max_length=20, choices=UNIT_CHOICES, default='pcs')
    min_order_qty = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal('1.000'))
    # Sum of available quantity across warehouses, maintained by the inventory ledger
    stock_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    specs = models.JSONField(default=dict, blank=True)
    images = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    is_featured = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name_en} ({self.sku})"

    @property
    def primary_image(self):
        return self.images[0] if self.images else ''

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']


class ProductReview(models.Model):
    """Customer review of a product, shown publicly once approved"""
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
        ('FLAGGED', 'Flagged'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reviews')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='reviews')
    overall_rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    quality_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=[MaxValueValidator(5)])
    value_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=[MaxValueValidator(5)])
    title = models.CharField(max_length=200, blank=True)
    content = models.TextField()
    pros = models.CharField(max_length=500, blank=True)
    cons = models.CharField(max_length=500, blank=True)
    is_anonymous = models.BooleanField(default=False)
    is_verified_purchase = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING', db_index=True)
    helpful_count = models.PositiveIntegerField(default=0)
    not_helpful_count = models.PositiveIntegerField(default=0)
    report_count = models.PositiveIntegerField(default=0)
    seller_response = models.TextField(blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.sku} - {self.overall_rating}/5"

    class Meta:
        db_table = 'product_reviews'
        ordering = ['-created_at']
        unique_together = [['product', 'user']]
        indexes = [
            models.Index(fields=['product', 'status'], name='idx_review_product_status'),
        ]


class ReviewVote(models.Model):
    review = models.ForeignKey(ProductReview, on_delete=models.CASCADE, related_name='votes')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='review_votes')
    is_helpful = models.BooleanField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'review_votes'
        unique_together = [['review', 'user']]


class ReviewReport(models.Model):
    REASON_CHOICES = [
        ('spam', 'Spam'),
        ('inappropriate', 'Inappropriate'),
        ('fake', 'Fake'),
        ('other', 'Other'),
    ]

    review = models.ForeignKey(ProductReview, on_delete=models.CASCADE, related_name='reports')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='review_reports')
    reason = models.CharField(max_length=20, choices=REASON_CHOICES)
    details = models.CharField(max_length=1000, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'review_reports'
        unique_together = [['review', 'user']]

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with role and contact phone"""
    ROLE_CHOICES = [
        ('CUSTOMER', 'Customer'),
        ('EDITOR', 'Editor'),
        ('ADMIN', 'Admin'),
    ]

    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='CUSTOMER', db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def effective_role(self):
        """Superusers always act as ADMIN"""
        if self.is_superuser:
            return 'ADMIN'
        return self.role

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    @classmethod
    def get_value(cls, key, default=None):
        row = cls.objects.filter(key=key).values_list('value', flat=True).first()
        return row if row is not None else default

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('USER_REGISTERED', 'User Registered'),
        ('USER_ROLE_CHANGED', 'User Role Changed'),
        ('ORDER_CREATED', 'Order Created'),
        ('ORDER_STATUS_CHANGED', 'Order Status Changed'),
        ('ORDER_PAYMENT_ADDED', 'Order Payment Added'),
        ('ORDER_SHIPPING_UPDATED', 'Order Shipping Updated'),
        ('ORDER_NOTE_ADDED', 'Order Note Added'),
        ('STOCK_DOCUMENT_CREATED', 'Stock Document Created'),
        ('STOCK_DOCUMENT_POSTED', 'Stock Document Posted'),
        ('STOCK_DOCUMENT_VOIDED', 'Stock Document Voided'),
        ('INVENTORY_ADJUSTED', 'Inventory Adjusted'),
        ('WAREHOUSE_CREATED', 'Warehouse Created'),
        ('COUPON_CREATED', 'Coupon Created'),
        ('REVIEW_MODERATED', 'Review Moderated'),
        ('BLOG_POST_PUBLISHED', 'Blog Post Published'),
        ('MEDIA_UPLOADED', 'Media Uploaded'),
        ('REVENUE_TARGET_SET', 'Revenue Target Set'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, order code)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., order code, stock document code)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default='')
    request_id = models.CharField(max_length=64, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model_name'),
            models.Index(fields=['object_reference'], name='idx_audit_object_ref'),
        ]


class MediaFile(models.Model):
    """Uploaded media asset (images, documents, videos)"""
    CATEGORY_CHOICES = [
        ('images', 'Images'),
        ('documents', 'Documents'),
        ('videos', 'Videos'),
    ]

    file = models.FileField(max_length=500)
    original_name = models.CharField(max_length=255)
    file_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, db_index=True)
    size = models.PositiveBigIntegerField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='images')
    folder = models.CharField(max_length=255, db_index=True)
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    alt_text = models.CharField(max_length=255, blank=True)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='media_files')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.original_name

    @property
    def url(self):
        return self.file.url if self.file else ''

    class Meta:
        db_table = 'media_files'
        ordering = ['-created_at']

from django.conf import settings
from django.db import models


class CustomerProfile(models.Model):
    """Storefront customer details kept next to the auth user"""
    CUSTOMER_TYPE_CHOICES = [
        ('PERSONAL', 'Personal'),
        ('BUSINESS', 'Business'),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='customer_profile')
    customer_type = models.CharField(max_length=20, choices=CUSTOMER_TYPE_CHOICES, default='PERSONAL')
    company_name = models.CharField(max_length=255, blank=True)
    tax_id = models.CharField(max_length=50, blank=True)
    company_email = models.EmailField(blank=True)
    company_phone = models.CharField(max_length=20, blank=True)
    loyalty_points = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} ({self.customer_type})"

    @classmethod
    def for_user(cls, user):
        """Return the user's profile, creating an empty PERSONAL one on first access"""
        profile, _ = cls.objects.get_or_create(user=user)
        return profile

    class Meta:
        db_table = 'customer_profiles'


class CustomerAddress(models.Model):
    """Saved shipping and billing addresses"""
    KIND_CHOICES = [
        ('SHIPPING', 'Shipping'),
        ('BILLING', 'Billing'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='addresses')
    kind = models.CharField(max_length=20, choices=KIND_CHOICES, default='SHIPPING')
    label = models.CharField(max_length=100, blank=True)
    recipient_name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20)
    line1 = models.CharField(max_length=255)
    line2 = models.CharField(max_length=255, blank=True)
    ward = models.CharField(max_length=100, blank=True)
    district = models.CharField(max_length=100, blank=True)
    city = models.CharField(max_length=100)
    province = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, default='Vietnam')
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.recipient_name} - {self.line1}, {self.city}"

    def as_snapshot(self):
        """Plain dict stored on orders so later edits do not change history"""
        return {
            'recipient_name': self.recipient_name,
            'phone': self.phone,
            'line1': self.line1,
            'line2': self.line2,
            'ward': self.ward,
            'district': self.district,
            'city': self.city,
            'province': self.province,
            'postal_code': self.postal_code,
            'country': self.country,
        }

    class Meta:
        db_table = 'customer_addresses'
        ordering = ['-is_default', '-created_at']

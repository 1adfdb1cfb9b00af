from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models


class BlogCategory(models.Model):
    name_en = models.CharField(max_length=200)
    name_vi = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name_en

    class Meta:
        db_table = 'blog_categories'
        ordering = ['sort_order', 'name_en']
        verbose_name_plural = 'blog categories'


class BlogPost(models.Model):
    """Bilingual blog post with an editorial workflow"""
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('REVIEW', 'In Review'),
        ('SCHEDULED', 'Scheduled'),
        ('PUBLISHED', 'Published'),
        ('ARCHIVED', 'Archived'),
    ]

    slug = models.SlugField(max_length=220, unique=True)
    title_en = models.CharField(max_length=300)
    title_vi = models.CharField(max_length=300, blank=True)
    excerpt_en = models.TextField(blank=True)
    excerpt_vi = models.TextField(blank=True)
    content_en = models.TextField(blank=True)
    content_vi = models.TextField(blank=True)
    cover_image = models.CharField(max_length=500, blank=True)
    category = models.ForeignKey(BlogCategory, on_delete=models.SET_NULL, null=True, blank=True, related_name='posts')
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='blog_posts')
    tags = models.JSONField(default=list, blank=True)
    is_featured = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT', db_index=True)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    published_at = models.DateTimeField(null=True, blank=True, db_index=True)
    view_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title_en

    @property
    def has_content(self):
        return bool((self.content_en or '').strip() or (self.content_vi or '').strip())

    def snapshot(self):
        return {
            'slug': self.slug,
            'title_en': self.title_en,
            'title_vi': self.title_vi,
            'excerpt_en': self.excerpt_en,
            'excerpt_vi': self.excerpt_vi,
            'content_en': self.content_en,
            'content_vi': self.content_vi,
            'cover_image': self.cover_image,
            'category_id': self.category_id,
            'tags': self.tags,
            'is_featured': self.is_featured,
            'status': self.status,
        }

    class Meta:
        db_table = 'blog_posts'
        ordering = ['-published_at', '-created_at']
        indexes = [
            models.Index(fields=['status', 'published_at'], name='idx_blogpost_status_published'),
        ]


class BlogPostRevision(models.Model):
    """Snapshot of a post taken before every admin update"""
    post = models.ForeignKey(BlogPost, on_delete=models.CASCADE, related_name='revisions')
    snapshot = models.JSONField()
    editor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='blog_revisions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'blog_post_revisions'
        ordering = ['-created_at', '-id']


class Service(models.Model):
    slug = models.SlugField(max_length=200, unique=True)
    title_en = models.CharField(max_length=300)
    title_vi = models.CharField(max_length=300, blank=True)
    summary_en = models.TextField(blank=True)
    summary_vi = models.TextField(blank=True)
    body_en = models.TextField(blank=True)
    body_vi = models.TextField(blank=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title_en

    class Meta:
        db_table = 'services'
        ordering = ['sort_order', 'title_en']


class ContactMessage(models.Model):
    """Message submitted through the public contact form"""
    STATUS_CHOICES = [
        ('NEW', 'New'),
        ('READ', 'Read'),
        ('REPLIED', 'Replied'),
        ('ARCHIVED', 'Archived'),
    ]

    name = models.CharField(max_length=200, validators=[MinLengthValidator(2)])
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)
    company = models.CharField(max_length=200, blank=True)
    subject = models.CharField(max_length=300, blank=True)
    message = models.TextField(validators=[MinLengthValidator(10)])
    locale = models.CharField(max_length=5, default='vi')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='NEW', db_index=True)
    admin_note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} - {self.subject or self.email}"

    class Meta:
        db_table = 'contact_messages'
        ordering = ['-created_at']

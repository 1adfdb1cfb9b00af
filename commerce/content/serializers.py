from rest_framework import serializers

from commerce.core.i18n import localized
from .models import BlogCategory, BlogPost, BlogPostRevision, Service, ContactMessage


class LocaleMixin:
    def _locale(self):
        return self.context.get('locale', 'vi')


class BlogCategorySerializer(LocaleMixin, serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    post_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = BlogCategory
        fields = ['id', 'name', 'name_en', 'name_vi', 'slug', 'sort_order', 'post_count']

    def get_name(self, obj):
        return localized(obj, 'name', self._locale())


class BlogPostListSerializer(LocaleMixin, serializers.ModelSerializer):
    title = serializers.SerializerMethodField()
    excerpt = serializers.SerializerMethodField()
    category_slug = serializers.CharField(source='category.slug', read_only=True, default=None)
    author_name = serializers.SerializerMethodField()

    class Meta:
        model = BlogPost
        fields = ['id', 'slug', 'title', 'excerpt', 'cover_image', 'category', 'category_slug', 'author_name',
                  'tags', 'is_featured', 'published_at', 'view_count']

    def get_title(self, obj):
        return localized(obj, 'title', self._locale())

    def get_excerpt(self, obj):
        return localized(obj, 'excerpt', self._locale())

    def get_author_name(self, obj):
        if obj.author is None:
            return None
        return obj.author.get_full_name() or obj.author.username


class BlogPostDetailSerializer(BlogPostListSerializer):
    content = serializers.SerializerMethodField()

    class Meta(BlogPostListSerializer.Meta):
        fields = BlogPostListSerializer.Meta.fields + ['content']

    def get_content(self, obj):
        return localized(obj, 'content', self._locale())


class BlogPostAdminSerializer(serializers.ModelSerializer):
    slug = serializers.SlugField(max_length=220, required=False, allow_blank=True)
    author_name = serializers.CharField(source='author.username', read_only=True, default=None)
    revision_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = BlogPost
        fields = ['id', 'slug', 'title_en', 'title_vi', 'excerpt_en', 'excerpt_vi', 'content_en', 'content_vi',
                  'cover_image', 'category', 'author', 'author_name', 'tags', 'is_featured', 'status',
                  'scheduled_at', 'published_at', 'view_count', 'revision_count', 'created_at', 'updated_at']
        read_only_fields = ['author', 'status', 'scheduled_at', 'published_at', 'view_count', 'created_at',
                            'updated_at']

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError('tags must be a list of strings')
        return [tag.strip() for tag in value if tag.strip()]


class BlogPostRevisionSerializer(serializers.ModelSerializer):
    editor_name = serializers.CharField(source='editor.username', read_only=True, default=None)

    class Meta:
        model = BlogPostRevision
        fields = ['id', 'post', 'snapshot', 'editor', 'editor_name', 'created_at']


class ScheduleSerializer(serializers.Serializer):
    scheduled_at = serializers.DateTimeField()


class BlogBulkActionSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), min_length=1, max_length=100)
    action = serializers.ChoiceField(choices=['publish', 'unpublish', 'archive', 'delete'])


class ServiceSerializer(LocaleMixin, serializers.ModelSerializer):
    title = serializers.SerializerMethodField()
    summary = serializers.SerializerMethodField()

    class Meta:
        model = Service
        fields = ['id', 'slug', 'title', 'summary', 'title_en', 'title_vi', 'sort_order']

    def get_title(self, obj):
        return localized(obj, 'title', self._locale())

    def get_summary(self, obj):
        return localized(obj, 'summary', self._locale())


class ServiceDetailSerializer(ServiceSerializer):
    body = serializers.SerializerMethodField()

    class Meta(ServiceSerializer.Meta):
        fields = ServiceSerializer.Meta.fields + ['body']

    def get_body(self, obj):
        return localized(obj, 'body', self._locale())


class ContactMessageSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=200)
    message = serializers.CharField(min_length=10, max_length=5000)

    class Meta:
        model = ContactMessage
        fields = ['id', 'name', 'email', 'phone', 'company', 'subject', 'message', 'locale', 'created_at']
        read_only_fields = ['created_at']


class ContactMessageAdminSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContactMessage
        fields = ['id', 'name', 'email', 'phone', 'company', 'subject', 'message', 'locale', 'status',
                  'admin_note', 'created_at', 'updated_at']
        read_only_fields = ['name', 'email', 'phone', 'company', 'subject', 'message', 'locale', 'created_at',
                            'updated_at']

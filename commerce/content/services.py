"""Blog editorial workflow: save with revisions, publish, schedule, archive and bulk actions"""
import logging

from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from commerce.core.errors import AppError
from commerce.core.utils import create_audit_log
from .models import BlogPost, BlogPostRevision
from .sanitize import sanitize_rich_text

logger = logging.getLogger(__name__)

RICH_TEXT_FIELDS = ('content_en', 'content_vi')
BULK_ACTIONS = ('publish', 'unpublish', 'archive', 'delete')


def _prepare(data, post=None):
    """Sanitize rich text and resolve the slug; a slug taken by another post is ALREADY_EXISTS"""
    data = dict(data)
    for field in RICH_TEXT_FIELDS:
        if field in data:
            data[field] = sanitize_rich_text(data[field])

    slug = (data.get('slug') or '').strip()
    if not slug and post is None:
        slug = slugify(data.get('title_en') or '')
        if not slug:
            raise AppError.validation('A slug or an English title is required', {'slug': 'required'})
    if slug:
        taken = BlogPost.objects.filter(slug=slug)
        if post is not None:
            taken = taken.exclude(pk=post.pk)
        if taken.exists():
            raise AppError.already_exists('BlogPost', 'slug', slug)
        data['slug'] = slug
    else:
        data.pop('slug', None)
    return data


def create_post(data, user=None, request=None):
    data = _prepare(data)
    post = BlogPost.objects.create(author=user if user and user.is_authenticated else None, **data)
    create_audit_log(
        request=request,
        user=user,
        action='create',
        model_name='BlogPost',
        object_id=str(post.id),
        object_name=post.title_en,
        object_reference=post.slug,
    )
    return post


def update_post(post, data, user=None, request=None):
    """Snapshot the current post as a revision, then apply the changes"""
    data = _prepare(data, post=post)
    with transaction.atomic():
        BlogPostRevision.objects.create(
            post=post,
            snapshot=post.snapshot(),
            editor=user if user and user.is_authenticated else None,
        )
        for field, value in data.items():
            setattr(post, field, value)
        post.save()
        create_audit_log(
            request=request,
            user=user,
            action='update',
            model_name='BlogPost',
            object_id=str(post.id),
            object_name=post.title_en,
            object_reference=post.slug,
            changes={'fields': sorted(data.keys())},
        )
    return post


def publish_post(post, user=None, request=None, now=None):
    if not (post.title_en or post.title_vi) or not post.has_content:
        raise AppError.validation('A post needs a title and content before it can be published',
                                  {'content_en': 'required'})
    post.status = 'PUBLISHED'
    post.published_at = post.published_at or now or timezone.now()
    post.scheduled_at = None
    post.save(update_fields=['status', 'published_at', 'scheduled_at', 'updated_at'])
    create_audit_log(
        request=request,
        user=user,
        action='BLOG_POST_PUBLISHED',
        model_name='BlogPost',
        object_id=str(post.id),
        object_name=post.title_en,
        object_reference=post.slug,
    )
    logger.info(f"Blog post {post.slug} published")
    return post


def schedule_post(post, scheduled_at, now=None):
    now = now or timezone.now()
    if scheduled_at <= now:
        raise AppError.validation('Scheduled date must be in the future', {'scheduled_at': 'future'})
    post.status = 'SCHEDULED'
    post.scheduled_at = scheduled_at
    post.save(update_fields=['status', 'scheduled_at', 'updated_at'])
    return post


def archive_post(post):
    post.status = 'ARCHIVED'
    post.save(update_fields=['status', 'updated_at'])
    return post


def bulk_action(ids, action, user=None, request=None):
    """Returns processed count, skipped ids and unknown ids; publish skips posts without content"""
    if action not in BULK_ACTIONS:
        raise AppError.validation(f"Unknown action {action}", {'action': 'invalid_choice'})
    posts = list(BlogPost.objects.filter(id__in=ids))
    missing = sorted(set(ids) - {post.id for post in posts})
    processed = []
    skipped = []

    with transaction.atomic():
        for post in posts:
            post_id = post.id
            if action == 'publish':
                if not post.has_content:
                    skipped.append(post_id)
                    continue
                publish_post(post, user=user, request=request)
            elif action == 'unpublish':
                post.status = 'DRAFT'
                post.save(update_fields=['status', 'updated_at'])
            elif action == 'archive':
                archive_post(post)
            else:
                create_audit_log(
                    request=request,
                    user=user,
                    action='delete',
                    model_name='BlogPost',
                    object_id=str(post.id),
                    object_name=post.title_en,
                    object_reference=post.slug,
                )
                post.delete()
            processed.append(post_id)

    return {'processed': len(processed), 'skipped': skipped, 'not_found': missing}


def publish_scheduled_posts(now=None):
    """Publish every SCHEDULED post whose scheduled_at has passed; returns the published slugs"""
    now = now or timezone.now()
    published = []
    for post in BlogPost.objects.filter(status='SCHEDULED', scheduled_at__lte=now).order_by('scheduled_at'):
        post.status = 'PUBLISHED'
        post.published_at = post.scheduled_at
        post.save(update_fields=['status', 'published_at', 'updated_at'])
        published.append(post.slug)
    if published:
        logger.info(f"Published {len(published)} scheduled blog posts")
    return published

"""
Test suite for content
Tests: rich text sanitizing, blog workflow and revisions, scheduled publishing, services and contact
"""
from datetime import timedelta
from io import StringIO
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from commerce.core.errors import AppError, ErrorCode
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.content import services
from commerce.content.models import BlogPost, BlogPostRevision, Service, ContactMessage
from commerce.content.sanitize import sanitize_rich_text, allow_attribute


class SanitizerTests(TestCase):
    """Allow-list HTML cleaning"""

    def test_allowed_markup_kept(self):
        html = '<h2>Specs</h2><p><strong>Flow</strong> 20 m3/h</p><ul><li>IP55</li></ul>'
        self.assertEqual(sanitize_rich_text(html), html)

    def test_script_dropped_with_content(self):
        self.assertEqual(sanitize_rich_text('<p>Hi<script>alert(1)</script></p>'), '<p>Hi</p>')
        self.assertEqual(sanitize_rich_text('<style>p{color:red}</style><p>x</p>'), '<p>x</p>')

    def test_unknown_tags_unwrapped(self):
        self.assertEqual(sanitize_rich_text('<custom>text</custom>'), 'text')

    def test_event_handlers_removed(self):
        self.assertEqual(sanitize_rich_text('<img src="/a.png" onerror="steal()">'), '<img src="/a.png">')
        self.assertFalse(allow_attribute('img', 'onload', 'x()'))
        self.assertTrue(allow_attribute('img', 'alt', 'Pump'))

    def test_dangerous_urls_removed(self):
        self.assertEqual(sanitize_rich_text('<a href="javascript:alert(1)">x</a>'), '<a>x</a>')
        self.assertEqual(sanitize_rich_text('<a href=" java&#9;script:alert(1)">x</a>'), '<a>x</a>')
        self.assertEqual(sanitize_rich_text('<a href="vbscript:msgbox(1)">x</a>'), '<a>x</a>')
        self.assertEqual(sanitize_rich_text('<img src="data:text/html;base64,AAAA">'), '<img>')
        self.assertEqual(sanitize_rich_text('<a href="https://example.com">x</a>'), '<a href="https://example.com">x</a>')

    def test_target_blank_gets_rel(self):
        result = sanitize_rich_text('<a href="https://example.com" target="_blank">x</a>')
        self.assertIn('rel="noopener noreferrer"', result)
        result = sanitize_rich_text('<a href="https://example.com" target="_blank" rel="nofollow">x</a>')
        self.assertIn('rel="nofollow"', result)

    def test_style_filtered(self):
        result = sanitize_rich_text('<p style="color: red; background: url(evil.png); position: fixed">x</p>')
        self.assertIn('color: red', result)
        self.assertNotIn('url(', result)
        self.assertNotIn('position', result)

    def test_comments_stripped(self):
        self.assertEqual(sanitize_rich_text('<p>a<!-- internal --></p>'), '<p>a</p>')

    def test_text_escaped(self):
        self.assertEqual(sanitize_rich_text('<p>5 &lt; 6</p>'), '<p>5 &lt; 6</p>')

    def test_unclosed_tags_closed(self):
        self.assertEqual(sanitize_rich_text('<p><em>open'), '<p><em>open</em></p>')

    def test_empty(self):
        self.assertEqual(sanitize_rich_text(None), '')


class BlogServiceTests(TestCase):
    """Editorial workflow"""

    def setUp(self):
        self.editor = TestDataFactory.create_editor()

    def test_create_generates_slug_and_sanitizes(self):
        post = services.create_post(
            {'title_en': 'Choosing a Centrifugal Pump', 'content_en': '<p>Read<script>x()</script></p>'},
            user=self.editor,
        )
        self.assertEqual(post.slug, 'choosing-a-centrifugal-pump')
        self.assertEqual(post.content_en, '<p>Read</p>')
        self.assertEqual(post.status, 'DRAFT')
        self.assertEqual(post.author, self.editor)

    def test_duplicate_slug_rejected(self):
        existing = TestDataFactory.create_blog_post()
        with self.assertRaises(AppError) as ctx:
            services.create_post({'title_en': 'Other', 'slug': existing.slug})
        self.assertEqual(ctx.exception.code, ErrorCode.ALREADY_EXISTS)

    def test_update_keeps_revision(self):
        post = TestDataFactory.create_blog_post(title='Original')
        services.update_post(post, {'title_en': 'Changed'}, user=self.editor)
        post.refresh_from_db()
        self.assertEqual(post.title_en, 'Changed')
        revision = BlogPostRevision.objects.get(post=post)
        self.assertEqual(revision.snapshot['title_en'], 'Original')
        self.assertEqual(revision.editor, self.editor)

    def test_publish_requires_content(self):
        post = TestDataFactory.create_blog_post(content='')
        with self.assertRaises(AppError):
            services.publish_post(post)

    def test_publish_sets_date(self):
        post = services.publish_post(TestDataFactory.create_blog_post())
        self.assertEqual(post.status, 'PUBLISHED')
        self.assertIsNotNone(post.published_at)

    def test_schedule_must_be_future(self):
        post = TestDataFactory.create_blog_post()
        with self.assertRaises(AppError):
            services.schedule_post(post, timezone.now() - timedelta(hours=1))
        post = services.schedule_post(post, timezone.now() + timedelta(days=1))
        self.assertEqual(post.status, 'SCHEDULED')

    def test_publish_scheduled_posts(self):
        due = TestDataFactory.create_blog_post()
        later = TestDataFactory.create_blog_post()
        now = timezone.now()
        services.schedule_post(due, now + timedelta(hours=1), now=now)
        services.schedule_post(later, now + timedelta(days=3), now=now)
        published = services.publish_scheduled_posts(now=now + timedelta(hours=2))
        self.assertEqual(published, [due.slug])
        due.refresh_from_db()
        self.assertEqual(due.status, 'PUBLISHED')
        self.assertEqual(due.published_at, due.scheduled_at)

    def test_publish_scheduled_command(self):
        post = TestDataFactory.create_blog_post(status='SCHEDULED', scheduled_at=timezone.now() - timedelta(minutes=5))
        out = StringIO()
        call_command('publish_scheduled_posts', stdout=out)
        self.assertIn('Published 1 post(s)', out.getvalue())
        post.refresh_from_db()
        self.assertEqual(post.status, 'PUBLISHED')

    def test_bulk_action_reports_skipped_and_missing(self):
        ready = TestDataFactory.create_blog_post()
        empty = TestDataFactory.create_blog_post(content='')
        result = services.bulk_action([ready.id, empty.id, 999999], 'publish')
        self.assertEqual(result, {'processed': 1, 'skipped': [empty.id], 'not_found': [999999]})

    def test_bulk_delete(self):
        posts = [TestDataFactory.create_blog_post() for _ in range(2)]
        result = services.bulk_action([post.id for post in posts], 'delete')
        self.assertEqual(result['processed'], 2)
        self.assertFalse(BlogPost.objects.exists())

    def test_unknown_bulk_action(self):
        with self.assertRaises(AppError):
            services.bulk_action([1], 'explode')


class PublicContentAPITests(TestCase):
    """Storefront blog, services and contact endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_only_published_posts_listed(self):
        published = services.publish_post(TestDataFactory.create_blog_post(title='Live'))
        TestDataFactory.create_blog_post(title='Hidden')
        response = self.client.get('/api/v1/blog/posts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['slug'] for row in response.data['results']], [published.slug])

    def test_post_detail_counts_views(self):
        post = services.publish_post(TestDataFactory.create_blog_post())
        self.client.get(f'/api/v1/blog/posts/{post.slug}/')
        response = self.client.get(f'/api/v1/blog/posts/{post.slug}/')
        self.assertEqual(response.data['view_count'], 2)

    def test_draft_post_not_found(self):
        post = TestDataFactory.create_blog_post()
        response = self.client.get(f'/api/v1/blog/posts/{post.slug}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_locale_selects_language(self):
        post = TestDataFactory.create_blog_post(title='Pump guide')
        BlogPost.objects.filter(pk=post.pk).update(title_vi='Hướng dẫn chọn bơm')
        services.publish_post(BlogPost.objects.get(pk=post.pk))
        response = self.client.get(f'/api/v1/blog/posts/{post.slug}/', {'locale': 'vi'})
        self.assertEqual(response.data['title'], 'Hướng dẫn chọn bơm')
        response = self.client.get(f'/api/v1/blog/posts/{post.slug}/', HTTP_ACCEPT_LANGUAGE='en-US,en;q=0.9')
        self.assertEqual(response.data['title'], 'Pump guide')

    def test_services_list_active_only(self):
        Service.objects.create(slug='installation', title_en='Installation', title_vi='Lắp đặt')
        Service.objects.create(slug='retired', title_en='Retired', is_active=False)
        response = self.client.get('/api/v1/services/', {'locale': 'en'})
        self.assertEqual([row['slug'] for row in response.data], ['installation'])
        self.assertEqual(self.client.get('/api/v1/services/retired/').status_code, status.HTTP_404_NOT_FOUND)

    def test_contact_submit(self):
        data = {'name': 'Pham D', 'email': 'pham@example.com', 'message': 'Please quote 20 valves DN50.'}
        response = self.client.post('/api/v1/contact/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'NEW')

    def test_contact_message_too_short(self):
        data = {'name': 'Pham D', 'email': 'pham@example.com', 'message': 'Hi'}
        response = self.client.post('/api/v1/contact/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)


class AdminContentAPITests(TestCase):
    """Back-office blog and contact endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.editor = TestDataFactory.create_editor()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.editor)

    def test_editor_creates_post(self):
        data = {'title_en': 'Valve maintenance', 'content_en': '<p onclick="x()">Body</p>'}
        response = self.client.post('/api/v1/admin/blog/posts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'valve-maintenance')
        self.assertEqual(response.data['content_en'], '<p>Body</p>')

    def test_list_includes_status_counts(self):
        TestDataFactory.create_blog_post()
        services.publish_post(TestDataFactory.create_blog_post())
        response = self.client.get('/api/v1/admin/blog/posts/')
        self.assertEqual(response.data['status_counts']['DRAFT'], 1)
        self.assertEqual(response.data['status_counts']['PUBLISHED'], 1)

    def test_publish_endpoint(self):
        post = TestDataFactory.create_blog_post()
        response = self.client.post(f'/api/v1/admin/blog/posts/{post.id}/publish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PUBLISHED')

    def test_editor_cannot_delete(self):
        post = TestDataFactory.create_blog_post()
        self.assertEqual(self.client.delete(f'/api/v1/admin/blog/posts/{post.id}/').status_code,
                         status.HTTP_403_FORBIDDEN)
        response = self.client.post('/api/v1/admin/blog/posts/bulk/', {'ids': [post.id], 'action': 'delete'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(BlogPost.objects.filter(pk=post.pk).exists())

    def test_admin_deletes(self):
        post = TestDataFactory.create_blog_post()
        self.client.authenticate_user(self.admin)
        self.assertEqual(self.client.delete(f'/api/v1/admin/blog/posts/{post.id}/').status_code,
                         status.HTTP_204_NO_CONTENT)

    def test_revisions_listed(self):
        post = TestDataFactory.create_blog_post()
        self.client.patch(f'/api/v1/admin/blog/posts/{post.id}/', {'title_en': 'Edited'}, format='json')
        response = self.client.get(f'/api/v1/admin/blog/posts/{post.id}/revisions/')
        self.assertEqual(response.data['count'], 1)

    def test_customer_blocked(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        self.assertEqual(self.client.post('/api/v1/admin/blog/posts/', {}, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)

    def test_opening_contact_marks_read(self):
        message = ContactMessage.objects.create(name='Vo E', email='vo@example.com', message='Need a quotation')
        response = self.client.get('/api/v1/admin/contacts/')
        self.assertEqual(response.data['unread'], 1)
        response = self.client.get(f'/api/v1/admin/contacts/{message.id}/')
        self.assertEqual(response.data['status'], 'READ')

    def test_editor_cannot_update_contact(self):
        message = ContactMessage.objects.create(name='Vo E', email='vo@example.com', message='Need a quotation')
        response = self.client.patch(f'/api/v1/admin/contacts/{message.id}/', {'status': 'REPLIED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

from django.core.management.base import BaseCommand
from commerce.content.services import publish_scheduled_posts


class Command(BaseCommand):
    help = 'Publish scheduled blog posts whose scheduled time has passed (run from cron)'

    def handle(self, *args, **options):
        published = publish_scheduled_posts()
        if not published:
            self.stdout.write('No scheduled posts are due')
            return
        for slug in published:
            self.stdout.write(f"  published {slug}")
        self.stdout.write(self.style.SUCCESS(f"Published {len(published)} post(s)"))

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

User = get_user_model()


class Command(BaseCommand):
    help = 'Create an ADMIN user, or promote an existing user to ADMIN/EDITOR'

    def add_arguments(self, parser):
        parser.add_argument('username', type=str)
        parser.add_argument('--email', type=str, default='')
        parser.add_argument('--password', type=str, help='Required when creating a new user')
        parser.add_argument('--role', type=str, default='ADMIN', choices=['ADMIN', 'EDITOR'])

    def handle(self, *args, **options):
        username = options['username']
        role = options['role']
        user = User.objects.filter(username=username).first()

        if user is None:
            if not options.get('password'):
                raise CommandError('--password is required to create a new user')
            user = User.objects.create_user(
                username=username,
                email=options.get('email') or '',
                password=options['password'],
            )
            self.stdout.write(f"Created user {username}")

        user.role = role
        user.is_staff = True
        user.save(update_fields=['role', 'is_staff', 'updated_at'])
        self.stdout.write(self.style.SUCCESS(f"{username} is now {role}"))

"""
Management command to create an admin account or promote an existing user
Usage: python manage.py create_admin <email> [--name NAME] [--password PASSWORD]
"""
from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
import getpass

User = get_user_model()


class Command(BaseCommand):
    help = 'Create an admin user, or promote an existing user to the admin role'

    def add_arguments(self, parser):
        parser.add_argument('email', type=str, help='Email of the admin account')
        parser.add_argument('--name', type=str, default='Admin', help='Display name for a new account')
        parser.add_argument('--password', type=str, default=None, help='Password for a new account (prompted if omitted)')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        user = User.objects.filter(email=email).first()

        if user:
            if user.role == User.ROLE_ADMIN:
                self.stdout.write(self.style.WARNING(f'{email} is already an admin'))
                return
            user.role = User.ROLE_ADMIN
            user.save(update_fields=['role', 'updated_at'])
            self.stdout.write(self.style.SUCCESS(f'✓ Promoted {email} to admin'))
            return

        password = options['password']
        if not password:
            password = getpass.getpass('Password: ')
            if password != getpass.getpass('Password (again): '):
                raise CommandError("Passwords don't match")
        if len(password) < 6:
            raise CommandError('Password must be at least 6 characters')

        User.objects.create_user(email=email, password=password, name=options['name'], role=User.ROLE_ADMIN)
        self.stdout.write(self.style.SUCCESS(f'✓ Created admin {email}'))

"""
Management command to seed the database with default data.

Creates:
- Default data bundles per network (MTN, Telecel, AT iShare, AT BigTime)
- Optional: Sample BECE/WASSCE result checker vouchers
- Optional: An admin account

Usage:
    python manage.py seed_data
    python manage.py seed_data --with-checkers
    python manage.py seed_data --admin-email admin@example.com --admin-password secret123
"""

import secrets
from datetime import date

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from core.exceptions import OrderError
from core.services import bulk_add_result_checkers, seed_default_bundles


User = get_user_model()

SAMPLE_CHECKERS = [
    # (type, base price, cost price)
    ('bece', '15.00', '11.00'),
    ('wassce', '18.00', '13.50'),
]


class Command(BaseCommand):
    help = 'Seed the database with default data bundles'

    def add_arguments(self, parser):
        parser.add_argument(
            '--with-checkers',
            action='store_true',
            help='Also create sample result checker vouchers'
        )
        parser.add_argument(
            '--checker-count',
            type=int,
            default=10,
            help='Vouchers per checker type (default 10)'
        )
        parser.add_argument('--admin-email', help='Create an admin account with this email')
        parser.add_argument('--admin-password', help='Password for --admin-email')

    def handle(self, *args, **options):
        self.stdout.write(self.style.NOTICE('Seeding database...'))

        bundles = seed_default_bundles()
        self.stdout.write(self.style.SUCCESS(
            f'✓ Created/verified {len(bundles)} data bundles'
        ))
        for bundle in bundles:
            self.stdout.write(f'  - {bundle.name} (GHS {bundle.base_price})')

        if options['with_checkers']:
            self._create_checkers(options['checker_count'])

        if options['admin_email']:
            self._create_admin(options['admin_email'], options['admin_password'])

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS('Database seeding complete!'))

    def _create_checkers(self, count):
        """Create sample vouchers for the current year."""
        self.stdout.write('')
        self.stdout.write(self.style.NOTICE('Creating sample result checkers...'))

        year = date.today().year
        for checker_type, base_price, cost_price in SAMPLE_CHECKERS:
            lines = '\n'.join(
                f'{checker_type.upper()}{year}{secrets.token_hex(4).upper()},{secrets.randbelow(10 ** 10):010d}'
                for _ in range(count)
            )
            try:
                created = bulk_add_result_checkers(checker_type, year, base_price, cost_price, lines)
            except OrderError as e:
                raise CommandError(e.message) from e
            self.stdout.write(self.style.SUCCESS(
                f'✓ Created {created} {checker_type.upper()} {year} vouchers'
            ))

    def _create_admin(self, email, password):
        if not password:
            raise CommandError('--admin-password is required with --admin-email')

        user, created = User.objects.get_or_create(
            email=email.lower(),
            defaults={'name': 'Administrator', 'role': User.Role.ADMIN, 'is_staff': True, 'is_superuser': True}
        )
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f'✓ Created admin: {email}'))
        else:
            self.stdout.write(f'  Admin already exists: {email}')

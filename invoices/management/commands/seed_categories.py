from django.core.management.base import BaseCommand
from invoices.models import Category


class Command(BaseCommand):
    help = 'Create the default invoice item categories'

    def handle(self, *args, **options):
        created_count = 0

        for order, name in enumerate(Category.FALLBACK_NAMES, start=1):
            category, created = Category.objects.get_or_create(
                name=name,
                defaults={'display_order': order}
            )
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'✓ Created category: {name}'))
            elif options.get('verbosity', 1) >= 2:
                self.stdout.write(self.style.WARNING(f'⚠ Already exists: {name}'))

        self.stdout.write(self.style.SUCCESS(
            f'\n✓ Categories ready: {created_count} created, '
            f'{len(Category.FALLBACK_NAMES) - created_count} already existed'
        ))

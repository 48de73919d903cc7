from django.core.management.base import BaseCommand
from django.utils import timezone

from portal import constants
from portal.services.dropdowns import DropdownService
from portal.services.upstream import dropdown_client


class Command(BaseCommand):
    help = "Drop and re-fetch cached dropdown option lists."

    def add_arguments(self, parser):
        parser.add_argument('categories', nargs='*',
                            help='Categories to refresh (default: every form dropdown).')

    def handle(self, *args, **options):
        now = timezone.now()
        service = DropdownService(dropdown_client())
        wanted = options['categories'] or list(constants.DROPDOWN_CATEGORIES)

        service.invalidate()
        empty = []
        for category in wanted:
            service.invalidate(category)
            if not service.options(category):
                empty.append(category)
        service.categories()

        for category in empty:
            self.stderr.write(self.style.WARNING(f"{category}: no options"))
        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(wanted) - len(empty)}/{len(wanted)} categories at {now}"))

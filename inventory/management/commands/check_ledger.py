from django.core.management.base import BaseCommand, CommandError

from inventory.ledger import find_ledger_drift
from inventory.models import Ingredient


class Command(BaseCommand):
    help = 'Check that every ingredient balance equals the sum of its stock transactions'

    def handle(self, *args, **options):
        drift = find_ledger_drift()
        checked = Ingredient.objects.count()

        if not drift:
            self.stdout.write(
                self.style.SUCCESS(f'All {checked} ingredient balances match their ledgers')
            )
            return

        self.stdout.write("Ingredients out of balance:")
        self.stdout.write("-" * 60)
        for row in drift:
            self.stdout.write(
                f"ID: {row['ingredient_id']:3d} | {row['name']:20s} | "
                f"balance {row['current_stock']} | ledger {row['ledger_total']}"
            )
        raise CommandError(f'{len(drift)} of {checked} ingredients do not match their ledgers')

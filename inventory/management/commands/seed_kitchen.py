from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from inventory import services
from inventory.models import (
    FoodCategory, InventoryCategory, InventoryItem, MenuItem, MenuItemIngredient, StockMovement,
)

INVENTORY_CATEGORIES = [
    ('Proteins & Meat', 'proteins-meat', '#DC2626'),
    ('Vegetables & Fresh Produce', 'vegetables-produce', '#10B981'),
    ('Flour & Bakery', 'flour-bakery', '#F59E0B'),
    ('Dairy & Eggs', 'dairy-eggs', '#3B82F6'),
    ('Cooking Essentials', 'cooking-essentials', '#EF4444'),
    ('Beverages & Drinks', 'beverages-drinks', '#8B5CF6'),
    ('Fresh Fruits & Desserts', 'fruits-desserts', '#EC4899'),
    ('Packaging & Supplies', 'packaging-supplies', '#6B7280'),
]

# category name -> [(item name, price, cost price, preparation minutes)]
MENU = {
    'Chips Corner': [
        ('Chips Plain', '150.00', '60.00', 8),
        ('Garlic Chips', '180.00', '70.00', 8),
        ('Chips Masala', '200.00', '75.00', 8),
        ('Sauteed Chips', '200.00', '80.00', 8),
    ],
    'Fried Chicken': [
        ('1/4 Chicken', '280.00', '120.00', 15),
        ('1/2 Chicken', '550.00', '230.00', 15),
        ('Full Chicken', '1100.00', '450.00', 15),
    ],
    'Wings & Lollipops': [
        ('2pcs Wings', '160.00', '70.00', 12),
        ('4pcs Wings', '320.00', '140.00', 12),
        ('1pc Lollipop', '160.00', '70.00', 12),
        ('2pcs Lollipops', '320.00', '140.00', 12),
    ],
    'Chicken Combo': [
        ('1/4 Chicken + Chips Plain', '350.00', '180.00', 18),
        ('1/4 Chicken + Garlic Chips', '400.00', '190.00', 18),
        ('1/4 Chicken + Bhajia', '450.00', '190.00', 18),
    ],
    'Wings Combo': [
        ('2pcs Wings + Chips Plain', '240.00', '130.00', 15),
    ],
    'Bhajia Corner': [
        ('Bhajia', '150.00', '60.00', 10),
    ],
}

# (name, category slug, unit, opening stock, minimum, maximum, unit cost)
INVENTORY_ITEMS = [
    ('Chicken', 'proteins-meat', 'pcs', '100', '10', '500', '250.00'),
    ('Wings', 'proteins-meat', 'pcs', '200', '40', '600', '35.00'),
    ('Potatoes', 'vegetables-produce', 'kg', '100', '10', '500', '80.00'),
    ('Cooking Oil', 'cooking-essentials', 'l', '40', '10', '100', '320.00'),
    ('Salt', 'cooking-essentials', 'kg', '10', '2', '25', '60.00'),
]


class Command(BaseCommand):
    help = 'Seed inventory categories, a starter menu and baseline ingredient mappings'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing menu and inventory data before seeding',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing menu and inventory data...')
            with transaction.atomic():
                MenuItemIngredient.objects.all().delete()
                StockMovement.objects.all().delete()
                InventoryItem.objects.all().delete()
                MenuItem.objects.all().delete()
                FoodCategory.objects.all().delete()
                InventoryCategory.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('Successfully cleared menu and inventory data'))

        with transaction.atomic():
            self.seed_inventory_categories()
            self.seed_menu()
            self.seed_inventory_items()

        self.stdout.write("\nIngredient mappings:")
        self.stdout.write("-" * 50)
        for mapping in MenuItemIngredient.objects.filter(is_active=True).select_related('menu_item', 'inventory_item'):
            self.stdout.write(
                f"{mapping.menu_item.name:30s} <- {mapping.quantity_used} {mapping.unit} {mapping.inventory_item.name}"
            )

    def seed_inventory_categories(self):
        for sort_order, (name, slug, color) in enumerate(INVENTORY_CATEGORIES, start=1):
            _category, created = InventoryCategory.objects.get_or_create(
                slug=slug,
                defaults={'name': name, 'color': color, 'sort_order': sort_order},
            )
            self.stdout.write(f"{'Created' if created else 'Already exists'}: inventory category {name}")

    def seed_menu(self):
        created_count = 0
        for sort_order, (category_name, items) in enumerate(MENU.items(), start=1):
            category, _ = FoodCategory.objects.get_or_create(
                name=category_name, defaults={'sort_order': sort_order},
            )
            for name, price, cost_price, minutes in items:
                _item, created = MenuItem.objects.get_or_create(
                    name=name,
                    defaults={
                        'category': category,
                        'price': Decimal(price),
                        'cost_price': Decimal(cost_price),
                        'preparation_time_minutes': minutes,
                    },
                )
                created_count += int(created)
        self.stdout.write(self.style.SUCCESS(f'Total new menu items created: {created_count}'))

    def seed_inventory_items(self):
        now = timezone.now()
        for name, category_slug, unit, stock, minimum, maximum, unit_cost in INVENTORY_ITEMS:
            if InventoryItem.objects.filter(name=name).exists():
                self.stdout.write(f"Already exists: {name}")
                continue
            category = InventoryCategory.objects.get(slug=category_slug)
            # Opening stock goes through the ledger and the matcher links the menu
            item = services.create_inventory_item({
                'name': name,
                'category': category.pk,
                'unit_of_measure': unit,
                'current_stock': stock,
                'minimum_stock': minimum,
                'maximum_stock': maximum,
                'unit_cost': unit_cost,
            }, actor=None, at=now)
            self.stdout.write(f"Created: {item.name} ({item.sku}) {item.current_stock} {item.unit_of_measure}")

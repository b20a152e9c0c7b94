import re
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q, Sum
from django.utils.text import slugify

from authentication.models import TimeStampedModel

ZERO = Decimal('0')
QUANTITY = Decimal('0.001')
MONEY = Decimal('0.01')


def unique_slug(model, value, instance_pk=None):
    """Slugify ``value`` and suffix it until no other row of ``model`` uses it"""
    base = slugify(value) or 'item'
    slug = base
    counter = 2
    queryset = model.objects.all()
    if instance_pk:
        queryset = queryset.exclude(pk=instance_pk)
    while queryset.filter(slug=slug).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


# =============== INVENTORY CATALOGUE ===============

class InventoryCategory(TimeStampedModel):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=20, default='#6B7280')
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'inventory_categories'
        ordering = ['sort_order', 'name']
        verbose_name_plural = 'Inventory Categories'

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(InventoryCategory, self.name, self.pk)
        super().save(*args, **kwargs)

    def total_items(self):
        return self.items.filter(is_active=True).count()

    def low_stock_items_count(self):
        return self.items.needs_restock().count()

    def total_value(self):
        return sum((item.stock_value for item in self.items.filter(is_active=True)), ZERO)


class Supplier(TimeStampedModel):
    SUPPLIER_TYPES = [
        ('local', 'Local'),
        ('international', 'International'),
        ('wholesale', 'Wholesale'),
        ('retail', 'Retail'),
    ]

    RELIABILITY_RATINGS = [
        ('excellent', 'Excellent'),
        ('good', 'Good'),
        ('average', 'Average'),
        ('poor', 'Poor'),
    ]

    name = models.CharField(max_length=255)
    supplier_code = models.CharField(max_length=50, unique=True, null=True, blank=True)
    contact_person = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, default='Kenya')
    tax_number = models.CharField(max_length=50, blank=True)
    payment_terms = models.JSONField(default=dict, blank=True)
    credit_limit = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    supplier_type = models.CharField(max_length=20, choices=SUPPLIER_TYPES, default='local')
    average_delivery_days = models.PositiveIntegerField(default=1)
    reliability_rating = models.CharField(max_length=20, choices=RELIABILITY_RATINGS, default='good')
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    last_order_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']

    def __str__(self):
        return self.name

    def _receipts(self):
        return self.stock_movements.filter(movement_type=StockMovement.IN)

    def total_orders(self):
        return self._receipts().count()

    def total_value(self):
        return self._receipts().aggregate(total=Sum('total_cost'))['total'] or ZERO


class InventoryItemQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def tracked(self):
        return self.filter(is_active=True, track_stock=True)

    def needs_restock(self):
        """Tracked items at or below their minimum, out-of-stock included"""
        return self.tracked().filter(current_stock__lte=F('minimum_stock'))

    def low_stock(self):
        return self.tracked().filter(current_stock__gt=0, current_stock__lte=F('minimum_stock'))

    def out_of_stock(self):
        return self.tracked().filter(current_stock__lte=0)

    def in_stock(self):
        return self.tracked().filter(current_stock__gt=0).filter(current_stock__gt=F('minimum_stock'))

    def with_stock_status(self, status):
        lookup = {
            InventoryItem.IN_STOCK: self.in_stock,
            InventoryItem.LOW_STOCK: self.low_stock,
            InventoryItem.OUT_OF_STOCK: self.out_of_stock,
        }
        if status not in lookup:
            return self.none()
        return lookup[status]()


class InventoryItem(TimeStampedModel):
    IN_STOCK = 'in_stock'
    LOW_STOCK = 'low_stock'
    OUT_OF_STOCK = 'out_of_stock'

    STOCK_STATUSES = [
        (IN_STOCK, 'In Stock'),
        (LOW_STOCK, 'Low Stock'),
        (OUT_OF_STOCK, 'Out of Stock'),
    ]

    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=50, unique=True, blank=True)
    description = models.TextField(blank=True)
    category = models.ForeignKey(InventoryCategory, on_delete=models.PROTECT, related_name='items')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='items')

    # Stock levels, only ever written by the stock ledger
    current_stock = models.DecimalField(max_digits=12, decimal_places=3, default=ZERO)
    minimum_stock = models.DecimalField(max_digits=12, decimal_places=3, default=ZERO)
    maximum_stock = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    unit_of_measure = models.CharField(max_length=20)

    unit_cost = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    selling_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    is_active = models.BooleanField(default=True)
    track_stock = models.BooleanField(default=True)
    last_restocked = models.DateTimeField(null=True, blank=True)
    storage_requirements = models.JSONField(default=dict, blank=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    objects = InventoryItemQuerySet.as_manager()

    class Meta:
        db_table = 'inventory_items'
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active', 'track_stock'], name='inv_item_active_tracked_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def save(self, *args, **kwargs):
        if not self.sku:
            self.sku = self.generate_sku(self.name, self.category if self.category_id else None)
        super().save(*args, **kwargs)

    @staticmethod
    def classify_stock(current_stock, minimum_stock):
        if current_stock <= 0:
            return InventoryItem.OUT_OF_STOCK
        if current_stock <= minimum_stock:
            return InventoryItem.LOW_STOCK
        return InventoryItem.IN_STOCK

    @property
    def stock_status(self):
        return self.classify_stock(self.current_stock, self.minimum_stock)

    def get_stock_status_display(self):
        return dict(self.STOCK_STATUSES)[self.stock_status]

    def needs_restock(self):
        return self.track_stock and self.current_stock <= self.minimum_stock

    def is_out_of_stock(self):
        return self.current_stock <= 0

    @property
    def stock_percentage(self):
        if not self.maximum_stock or self.maximum_stock <= 0:
            return ZERO
        return (self.current_stock / self.maximum_stock * 100).quantize(MONEY)

    @property
    def stock_value(self):
        return (self.current_stock * self.unit_cost).quantize(MONEY)

    @classmethod
    def generate_sku(cls, name, category=None):
        """
        Build ``CAT-NAM-0001``: three letters of the category slug, three
        alphanumerics of the name and a running sequence number.
        """
        prefix = category.slug[:3].upper() if category and category.slug else 'INV'
        name_code = re.sub(r'[^A-Za-z0-9]', '', name)[:3].upper() or 'ITM'
        sequence = cls.objects.count() + 1
        sku = f"{prefix}-{name_code}-{sequence:04d}"
        while cls.objects.filter(sku=sku).exists():
            sequence += 1
            sku = f"{prefix}-{name_code}-{sequence:04d}"
        return sku


# =============== STOCK LEDGER ===============

class StockMovement(models.Model):
    """
    Append-only ledger entry. ``quantity`` is always positive, the direction
    comes from ``movement_type``; ``previous_stock`` and ``new_stock`` are
    snapshots taken when the entry was written.
    """
    IN = 'in'
    OUT = 'out'
    ADJUSTMENT = 'adjustment'
    TRANSFER = 'transfer'
    WASTE = 'waste'

    MOVEMENT_TYPES = [
        (IN, 'Stock In'),
        (OUT, 'Stock Out'),
        (ADJUSTMENT, 'Adjustment'),
        (TRANSFER, 'Transfer'),
        (WASTE, 'Waste'),
    ]

    MOVEMENT_COLORS = {
        IN: 'green',
        OUT: 'red',
        ADJUSTMENT: 'blue',
        TRANSFER: 'yellow',
        WASTE: 'gray',
    }

    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name='stock_movements')
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPES)
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    previous_stock = models.DecimalField(max_digits=12, decimal_places=3)
    new_stock = models.DecimalField(max_digits=12, decimal_places=3)

    reference_type = models.CharField(max_length=50, blank=True)
    reference_id = models.CharField(max_length=64, blank=True)
    batch_number = models.CharField(max_length=50, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    reason = models.CharField(max_length=100)
    notes = models.TextField(blank=True)

    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    movement_date = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_movements'
        ordering = ['movement_date', 'id']
        indexes = [
            models.Index(fields=['inventory_item', 'movement_date'], name='stock_mv_item_date_idx'),
            models.Index(fields=['movement_type', 'movement_date'], name='stock_mv_type_date_idx'),
        ]

    def __str__(self):
        return f"{self.get_movement_type_display()} {self.quantity} {self.inventory_item.name}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError('Stock movements are immutable once recorded.')
        super().save(*args, **kwargs)

    @property
    def color(self):
        return self.MOVEMENT_COLORS.get(self.movement_type, 'gray')

    @property
    def signed_quantity(self):
        return self.new_stock - self.previous_stock


# =============== MENU ===============

class FoodCategory(TimeStampedModel):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=20, default='#F59E0B')
    icon = models.CharField(max_length=50, blank=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    requires_kitchen = models.BooleanField(default=True)

    class Meta:
        db_table = 'menu_categories'
        ordering = ['sort_order', 'name']
        verbose_name_plural = 'Food Categories'

    def __str__(self):
        return str(self.name)

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(FoodCategory, self.name, self.pk)
        super().save(*args, **kwargs)


class MenuItem(TimeStampedModel):
    category = models.ForeignKey(FoodCategory, on_delete=models.PROTECT, related_name='items')
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    sku = models.CharField(max_length=50, null=True, blank=True, unique=True)
    is_available = models.BooleanField(default=True)
    is_combo = models.BooleanField(default=False)
    combo_items = models.JSONField(default=list, blank=True)
    requires_kitchen = models.BooleanField(default=True)
    preparation_time_minutes = models.PositiveIntegerField(default=10)
    image_url = models.URLField(max_length=500, blank=True)
    sort_order = models.IntegerField(default=0)
    allergens = models.JSONField(default=list, blank=True)
    special_instructions = models.TextField(blank=True)

    class Meta:
        db_table = 'menu_items'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(MenuItem, self.name, self.pk)
        super().save(*args, **kwargs)

    @property
    def profit(self):
        return self.price - self.cost_price

    @property
    def profit_margin(self):
        if self.price <= 0:
            return ZERO
        return ((self.price - self.cost_price) / self.price * 100).quantize(MONEY)

    def is_low_profit(self, threshold=20):
        return self.profit_margin < threshold


class MenuItemIngredient(TimeStampedModel):
    """How much of an inventory item one unit of a menu item consumes"""
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name='ingredients')
    inventory_item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name='menu_item_ingredients')
    quantity_used = models.DecimalField(max_digits=10, decimal_places=3)
    unit = models.CharField(max_length=20)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'menu_item_ingredients'
        ordering = ['menu_item', 'inventory_item']
        constraints = [
            models.UniqueConstraint(
                fields=['menu_item', 'inventory_item'],
                condition=Q(is_active=True),
                name='unique_active_ingredient_per_menu_item',
            ),
        ]

    def __str__(self):
        return f"{self.menu_item.name}: {self.quantity_used} {self.unit} {self.inventory_item.name}"

    def required_for(self, portions):
        return (self.quantity_used * Decimal(portions)).quantize(QUANTITY)

    def can_make(self, portions=1):
        return self.inventory_item.current_stock >= self.required_for(portions)

    def max_portions(self):
        if self.quantity_used <= 0:
            return 0
        return int(self.inventory_item.current_stock // self.quantity_used)

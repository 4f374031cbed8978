from decimal import Decimal
from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('slug', models.SlugField(blank=True, max_length=255, unique=True)),
                ('sku', models.CharField(blank=True, max_length=100)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('stock_quantity', models.PositiveIntegerField(default=0)),
                ('track_inventory', models.BooleanField(default=True)),
                ('allow_backorders', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('primary_image', models.URLField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Bundle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('slug', models.SlugField(blank=True, max_length=255, unique=True)),
                ('sku', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('description', models.TextField(blank=True)),
                ('short_description', models.CharField(blank=True, max_length=500)),
                ('bundle_type', models.CharField(choices=[('fixed', 'Fixed'), ('configurable', 'Configurable')], default='fixed', max_length=20)),
                ('discount_type', models.CharField(choices=[('fixed_price', 'Fixed Bundle Price'), ('percentage', 'Percentage Off Items Total')], default='percentage', max_length=20)),
                ('discount_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Bundle price for fixed_price bundles, percent off (0-100) for percentage bundles', max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('cart_display', models.CharField(choices=[('single_item', 'Single Cart Line'), ('grouped', 'Grouped Under Bundle'), ('individual', 'Individual Product Lines')], default='grouped', max_length=20)),
                ('allow_coupon_stacking', models.BooleanField(default=False, help_text='Allow cart coupons on top of the bundle discount')),
                ('is_active', models.BooleanField(default=True)),
                ('starts_at', models.DateTimeField(blank=True, null=True)),
                ('ends_at', models.DateTimeField(blank=True, null=True)),
                ('stock_limit', models.PositiveIntegerField(blank=True, help_text='Leave empty for unlimited', null=True)),
                ('stock_sold', models.PositiveIntegerField(default=0)),
                ('badge_label', models.CharField(blank=True, max_length=50)),
                ('badge_color', models.CharField(blank=True, max_length=20)),
                ('featured_image', models.URLField(blank=True, max_length=500)),
                ('cta_text', models.CharField(blank=True, default='Add Bundle to Cart', max_length=100)),
                ('show_countdown', models.BooleanField(default=False)),
                ('show_savings', models.BooleanField(default=True)),
                ('show_on_homepage', models.BooleanField(default=False)),
                ('homepage_position', models.CharField(blank=True, choices=[('carousel', 'Carousel'), ('grid', 'Grid'), ('banner', 'Banner')], max_length=20)),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('add_to_cart_count', models.PositiveIntegerField(default=0)),
                ('purchase_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['display_order', '-created_at'],
                'indexes': [
                    models.Index(fields=['is_active', 'bundle_type'], name='bundle_active_type_idx'),
                    models.Index(fields=['show_on_homepage', 'homepage_position'], name='bundle_homepage_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('price_override', models.DecimalField(blank=True, decimal_places=2, help_text='Optional price for this product inside the bundle', max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('sort_order', models.IntegerField(default=0)),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='commerce.bundle')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bundle_items', to='commerce.product')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'unique_together': {('bundle', 'product')},
            },
        ),
        migrations.CreateModel(
            name='BundleSlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True)),
                ('slot_order', models.IntegerField(default=0)),
                ('is_required', models.BooleanField(default=True)),
                ('min_selections', models.PositiveIntegerField(default=1)),
                ('max_selections', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='slots', to='commerce.bundle')),
            ],
            options={
                'ordering': ['slot_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='BundleSlotProduct',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('price_override', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('sort_order', models.IntegerField(default=0)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bundle_slot_entries', to='commerce.product')),
                ('slot', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='products', to='commerce.bundleslot')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'unique_together': {('slot', 'product')},
            },
        ),
        migrations.CreateModel(
            name='Coupon',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True)),
                ('name', models.CharField(blank=True, max_length=255)),
                ('coupon_type', models.CharField(choices=[('percentage', 'Percentage'), ('fixed', 'Fixed Amount'), ('free_shipping', 'Free Shipping')], default='percentage', max_length=20)),
                ('value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('minimum_order_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('maximum_discount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('usage_limit', models.PositiveIntegerField(blank=True, null=True)),
                ('times_used', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('starts_at', models.DateTimeField(blank=True, null=True)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name='Cart',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('coupon_code', models.CharField(blank=True, max_length=50, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='cart', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='CartItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_bundle_item', models.BooleanField(default=False, help_text='Row is a product line inside a bundle group')),
                ('bundle_slot_selections', models.JSONField(blank=True, help_text='Snapshot of the bundle contents', null=True)),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(100)])),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Price at time of adding to cart', max_digits=12)),
                ('bundle_discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Bundle discount applied to this row at its current quantity', max_digits=12)),
                ('added_at', models.DateTimeField(auto_now_add=True)),
                ('bundle', models.ForeignKey(blank=True, help_text='Bundle this row was added from (if any)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cart_items', to='commerce.bundle')),
                ('cart', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='commerce.cart')),
                ('parent_cart_item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='commerce.cartitem')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to='commerce.product')),
            ],
            options={
                'ordering': ['added_at', 'id'],
                'indexes': [models.Index(fields=['cart', 'bundle'], name='cartitem_cart_bundle_idx')],
            },
        ),
    ]

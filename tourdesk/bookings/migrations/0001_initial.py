from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bokun_booking_id', models.CharField(max_length=100, unique=True)),
                ('bokun_product_id', models.CharField(blank=True, max_length=50)),
                ('product_name', models.CharField(max_length=255)),
                ('customer_name', models.CharField(blank=True, max_length=255)),
                ('customer_email', models.EmailField(blank=True, max_length=254)),
                ('customer_phone', models.CharField(blank=True, max_length=30)),
                ('tour_date', models.DateTimeField()),
                ('tour_time', models.CharField(blank=True, help_text="Entry slot as shown to the customer, e.g. '10:00 AM'.", max_length=20)),
                ('pax', models.PositiveIntegerField(default=1)),
                ('reference_number', models.CharField(blank=True, help_text='Museum ticket reference. Empty until tickets are purchased.', max_length=100)),
                ('has_audio_guide', models.BooleanField(default=False)),
                ('audio_guide_url', models.URLField(blank=True, max_length=500)),
                ('audio_guide_username', models.CharField(blank=True, max_length=100)),
                ('audio_guide_password', models.CharField(blank=True, max_length=100)),
                ('vox_dynamic_link', models.URLField(blank=True, max_length=500)),
                ('tickets_sent_at', models.DateTimeField(blank=True, null=True)),
                ('audio_guide_sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['tour_date'],
                'indexes': [models.Index(fields=['tour_date'], name='idx_booking_tour_date')],
            },
        ),
    ]

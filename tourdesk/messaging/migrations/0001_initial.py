import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bookings', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MessageAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('original_name', models.CharField(max_length=255)),
                ('file', models.FileField(max_length=500, upload_to='attachments/%Y/%m/')),
                ('mime_type', models.CharField(default='application/pdf', max_length=100)),
                ('size', models.PositiveBigIntegerField(default=0, help_text='File size in bytes.')),
                ('public_url', models.URLField(blank=True, help_text='Last presigned or signed download URL handed to a vendor.', max_length=1000)),
                ('url_expires_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='bookings.booking')),
            ],
            options={
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='MessageTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('slug', models.SlugField(max_length=100, unique=True)),
                ('channel', models.CharField(choices=[('whatsapp', 'WhatsApp'), ('sms', 'SMS'), ('email', 'Email')], max_length=20)),
                ('language', models.CharField(default='en', max_length=5)),
                ('template_type', models.CharField(choices=[('ticket_only', 'Ticket only'), ('ticket_with_audio', 'Ticket with audio guide')], default='ticket_only', max_length=30)),
                ('subject', models.CharField(blank=True, help_text='Email subject line.', max_length=255)),
                ('content', models.TextField()),
                ('is_default', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('sort_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['sort_order', 'language', 'name'],
                'indexes': [
                    models.Index(fields=['channel', 'language'], name='idx_tmpl_chan_lang'),
                    models.Index(fields=['language', 'template_type', 'is_active'], name='idx_tmpl_lang_type_active'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('channel', models.CharField(choices=[('whatsapp', 'WhatsApp'), ('sms', 'SMS'), ('email', 'Email')], max_length=20)),
                ('direction', models.CharField(choices=[('outbound', 'Outbound'), ('inbound', 'Inbound')], default='outbound', max_length=10)),
                ('recipient', models.CharField(help_text='Phone number or email address.', max_length=255)),
                ('subject', models.CharField(blank=True, max_length=255)),
                ('content', models.TextField(blank=True)),
                ('language', models.CharField(default='en', max_length=5)),
                ('template_variables', models.JSONField(blank=True, default=dict)),
                ('external_id', models.CharField(blank=True, help_text='Twilio SID or Resend email id.', max_length=100)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('queued', 'Queued'), ('sent', 'Sent'), ('delivered', 'Delivered'), ('read', 'Read'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('error_message', models.TextField(blank=True)),
                ('retry_count', models.PositiveSmallIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('queued_at', models.DateTimeField(blank=True, null=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('failed_at', models.DateTimeField(blank=True, null=True)),
                ('last_retry_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('attachments', models.ManyToManyField(blank=True, related_name='messages', to='messaging.messageattachment')),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='messages', to='bookings.booking')),
                ('retry_of', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='resends', to='messaging.message')),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='messages', to='messaging.messagetemplate')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(condition=models.Q(('external_id__gt', '')), fields=['external_id'], name='idx_msg_external_id'),
                    models.Index(fields=['status', 'failed_at'], name='idx_msg_status_failed'),
                    models.Index(fields=['booking', 'channel'], name='idx_msg_booking_chan'),
                ],
            },
        ),
    ]

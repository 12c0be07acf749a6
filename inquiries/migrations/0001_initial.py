import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Inquiry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('name', models.CharField(max_length=50, validators=[django.core.validators.MinLengthValidator(2)])),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('phone', models.CharField(max_length=20, validators=[django.core.validators.RegexValidator(message='Please provide a valid phone number with country code (e.g., +911234567890)', regex='^\\+[0-9]{10,}$')])),
                ('city', models.CharField(max_length=30, validators=[django.core.validators.MinLengthValidator(2)])),
                ('education', models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(2)])),
                ('course', models.CharField(max_length=100)),
                ('preferred_location', models.CharField(max_length=100)),
                ('medium', models.CharField(choices=[('IVR', 'IVR'), ('Email', 'Email'), ('WhatsApp', 'WhatsApp')], max_length=20)),
                ('message', models.TextField(blank=True, max_length=1000, null=True)),
                ('status', models.CharField(choices=[('hot', 'Hot'), ('warm', 'Warm'), ('cold', 'Cold'), ('walkin', 'Walkin'), ('not_interested', 'Not Interested'), ('online_conversion', 'Online Conversion')], default='warm', max_length=30)),
                ('department', models.CharField(choices=[('presales', 'Presales'), ('sales', 'Sales')], default='presales', max_length=20)),
                ('assignment_status', models.CharField(choices=[('not_assigned', 'Not Assigned'), ('assigned', 'Assigned'), ('reassigned', 'Reassigned'), ('forwarded_to_sales', 'Forwarded to Sales')], default='not_assigned', max_length=30)),
                ('pending_first_follow_up', models.BooleanField(default=False)),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_inquiries', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_inquiries', to=settings.AUTH_USER_MODEL)),
                ('forwarded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='forwarded_inquiries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'Inquiries',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='FollowUp',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('type', models.CharField(choices=[('call', 'Call'), ('email', 'Email'), ('whatsapp', 'WhatsApp')], default='call', max_length=20)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('rescheduled', 'Rescheduled'), ('no_answer', 'No Answer'), ('busy', 'Busy')], default='scheduled', max_length=20)),
                ('title', models.CharField(blank=True, default='', max_length=100)),
                ('completed_date', models.DateTimeField(blank=True, null=True)),
                ('duration', models.PositiveIntegerField(blank=True, help_text='Duration in minutes', null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(1440)])),
                ('outcome', models.CharField(blank=True, choices=[('positive', 'Positive'), ('neutral', 'Neutral'), ('negative', 'Negative'), ('interested', 'Interested'), ('not_interested', 'Not Interested'), ('needs_time', 'Needs Time'), ('requested_info', 'Requested Info'), ('scheduled_meeting', 'Scheduled Meeting')], default='', max_length=30)),
                ('next_follow_up_date', models.DateTimeField(blank=True, null=True)),
                ('inquiry_status', models.CharField(choices=[('hot', 'Hot'), ('warm', 'Warm'), ('cold', 'Cold')], default='warm', max_length=10)),
                ('lead_stage', models.CharField(blank=True, choices=[('Hot', 'Hot'), ('Warm', 'Warm'), ('Cold', 'Cold'), ('Not Interested', 'Not Interested'), ('Walkin', 'Walkin'), ('Online-Conversion', 'Online-Conversion')], default='', max_length=30)),
                ('sub_stage', models.CharField(blank=True, default='', max_length=200)),
                ('message', models.TextField(blank=True, default='', max_length=1000)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='follow_ups', to=settings.AUTH_USER_MODEL)),
                ('inquiry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='follow_ups', to='inquiries.inquiry')),
            ],
            options={
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Activity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('created', 'Created'), ('claimed', 'Claimed'), ('assigned', 'Assigned'), ('reassigned', 'Reassigned'), ('forwarded_to_sales', 'Forwarded to Sales'), ('moved_to_unattended', 'Moved to Unattended')], max_length=30)),
                ('details', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='inquiry_activities', to=settings.AUTH_USER_MODEL)),
                ('inquiry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activities', to='inquiries.inquiry')),
                ('target_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'Activities',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='inquiry',
            index=models.Index(fields=['email'], name='idx_inquiry_email'),
        ),
        migrations.AddIndex(
            model_name='inquiry',
            index=models.Index(fields=['status'], name='idx_inquiry_status'),
        ),
        migrations.AddIndex(
            model_name='inquiry',
            index=models.Index(fields=['course'], name='idx_inquiry_course'),
        ),
        migrations.AddIndex(
            model_name='inquiry',
            index=models.Index(fields=['phone'], name='idx_inquiry_phone'),
        ),
        migrations.AddIndex(
            model_name='inquiry',
            index=models.Index(fields=['department', 'assigned_to'], name='idx_inquiry_dept_owner'),
        ),
        migrations.AddIndex(
            model_name='inquiry',
            index=models.Index(fields=['-created_at'], name='idx_inquiry_created'),
        ),
        migrations.AddIndex(
            model_name='followup',
            index=models.Index(fields=['inquiry', '-created_at'], name='idx_follow_up_inquiry_date'),
        ),
        migrations.AddIndex(
            model_name='activity',
            index=models.Index(fields=['inquiry'], name='idx_activity_inquiry'),
        ),
        migrations.AddIndex(
            model_name='activity',
            index=models.Index(fields=['-created_at'], name='idx_activity_created'),
        ),
    ]

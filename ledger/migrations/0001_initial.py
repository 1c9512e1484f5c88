import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import ledger.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='CustomUser',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('phone', models.CharField(max_length=20, unique=True)),
                ('nickname', models.CharField(blank=True, max_length=50)),
                ('referral_code', models.CharField(blank=True, db_index=True, max_length=12, unique=True)),
                ('delete_requested_at', models.DateTimeField(blank=True, null=True)),
                ('delete_effective_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('referred_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='referrals', to=settings.AUTH_USER_MODEL)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('delete_requested_at__isnull', True), ('delete_effective_at__isnull', True)),
                            models.Q(('delete_requested_at__isnull', False), ('delete_effective_at__isnull', False)),
                            _connector='OR',
                        ),
                        name='user_delete_stamps_paired',
                    ),
                ],
            },
            managers=[
                ('objects', ledger.models.CustomUserManager()),
            ],
        ),
        migrations.CreateModel(
            name='TaskDefinition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category', models.CharField(choices=[('audio_transcription', 'Audio transcription'), ('video_transcription', 'Video transcription'), ('image_caption', 'Image caption'), ('image_tagging', 'Image tagging'), ('text_cleanup', 'Text cleanup')], db_index=True, max_length=40)),
                ('title', models.CharField(max_length=160)),
                ('prompt', models.TextField()),
                ('media_url', models.URLField(blank=True, default='')),
                ('reward', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('complexity', models.PositiveSmallIntegerField(default=1)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['id'],
                'indexes': [models.Index(fields=['is_active', 'category'], name='task_active_category_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('reward__gt', 0)), name='task_reward_positive')],
            },
        ),
        migrations.CreateModel(
            name='Wallet',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('balance', models.BigIntegerField(default=0)),
                ('bonus_balance', models.BigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='wallet', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('balance__gte', 0)), name='wallet_balance_non_negative'),
                    models.CheckConstraint(condition=models.Q(('bonus_balance__gte', 0)), name='wallet_bonus_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DailyAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day_key', models.CharField(max_length=10)),
                ('slot', models.PositiveSmallIntegerField()),
                ('category', models.CharField(max_length=40)),
                ('assigned_at', models.DateTimeField(auto_now_add=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('answer', models.TextField(blank=True, default='')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assignments', to='ledger.taskdefinition')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='daily_assignments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['slot'],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'day_key', 'task'), name='uniq_assignment_user_day_task'),
                    models.UniqueConstraint(fields=('user', 'day_key', 'category'), name='uniq_assignment_user_day_category'),
                    models.UniqueConstraint(fields=('user', 'day_key', 'slot'), name='uniq_assignment_user_day_slot'),
                    models.CheckConstraint(condition=models.Q(('slot__gte', 1)), name='assignment_slot_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CompletionRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day_key', models.CharField(max_length=10)),
                ('reward', models.PositiveIntegerField()),
                ('answer', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('assignment', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='completion', to='ledger.dailyassignment')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='completions', to='ledger.taskdefinition')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='completions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['user', '-created_at'], name='completion_user_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='ReferralBonusGrant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.PositiveIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('referred_user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='referral_grants_received', to=settings.AUTH_USER_MODEL)),
                ('referrer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='referral_grants_given', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('referrer', 'referred_user'), name='uniq_referral_grant_pair'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WithdrawalRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.PositiveBigIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('phone', models.CharField(max_length=20)),
                ('method', models.CharField(choices=[('mpesa', 'M-Pesa'), ('airtel_money', 'Airtel Money')], default='mpesa', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid')], default='pending', max_length=10)),
                ('receipt_ref', models.CharField(blank=True, default='', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='withdrawals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['user', '-created_at'], name='withdrawal_user_created_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='withdrawal_amount_positive'),
                    models.CheckConstraint(
                        condition=models.Q(('status', 'pending'), models.Q(('receipt_ref', ''), _negated=True), _connector='OR'),
                        name='withdrawal_paid_has_receipt',
                    ),
                ],
            },
        ),
    ]

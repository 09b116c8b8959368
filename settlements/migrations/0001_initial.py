# Generated migration file
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
            name='Settlement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('month', models.PositiveSmallIntegerField(help_text='0 = January, 11 = December')),
                ('year', models.PositiveSmallIntegerField()),
                ('work_days', models.PositiveSmallIntegerField(default=0)),
                ('total_days', models.PositiveSmallIntegerField(default=0)),
                ('base_salary_usd', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('prorated_salary_usd', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('commissionable_income_gtq', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('commission_gtq', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('commission_usd', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('exchange_rate', models.DecimalField(decimal_places=4, help_text='Quetzales per US dollar', max_digits=10)),
                ('goal_reached', models.BooleanField(default=False)),
                ('goal_bonus_usd', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('total_usd', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('total_gtq', models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ('payment_method', models.CharField(blank=True, max_length=50)),
                ('status', models.CharField(choices=[('completed', 'Completed')], default='completed', max_length=20)),
                ('is_locked', models.BooleanField(default=False)),
                ('locked_at', models.DateTimeField(blank=True, null=True)),
                ('unlocked_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('locked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='locked_settlements', to=settings.AUTH_USER_MODEL)),
                ('staff', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='settlements', to=settings.AUTH_USER_MODEL)),
                ('unlocked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='unlocked_settlements', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-year', '-month'],
                'indexes': [models.Index(fields=['year', 'month'], name='settlement_period_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('staff', 'month', 'year'), name='unique_settlement_per_staff_period'),
                    models.CheckConstraint(condition=models.Q(('month__gte', 0), ('month__lte', 11)), name='settlement_month_range'),
                    models.CheckConstraint(condition=models.Q(('exchange_rate__gt', 0)), name='settlement_exchange_rate_positive'),
                ],
            },
        ),
    ]

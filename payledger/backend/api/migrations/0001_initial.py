import decimal
import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


MONEY = dict(max_digits=19, decimal_places=2)
PAY_FREQUENCY_CHOICES = [('WEEKLY', 'Weekly'), ('BIWEEKLY', 'Bi-weekly'), ('MONTHLY', 'Monthly')]


def money_field(**kwargs):
    return models.DecimalField(default=decimal.Decimal('0.00'), **MONEY, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Company',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, unique=True)),
                ('trn', models.CharField(blank=True, help_text='Taxpayer Registration Number', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={'verbose_name_plural': 'Companies'},
        ),
        migrations.CreateModel(
            name='Membership',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date_joined', models.DateField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='api.company')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to=settings.AUTH_USER_MODEL)),
            ],
            options={'unique_together': {('user', 'company')}},
        ),
        migrations.CreateModel(
            name='GLAccount',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('account_number', models.CharField(max_length=20)),
                ('name', models.CharField(max_length=255)),
                ('type', models.CharField(choices=[('ASSET', 'Asset'), ('LIABILITY', 'Liability'), ('EQUITY', 'Equity'), ('INCOME', 'Income'), ('EXPENSE', 'Expense')], max_length=10)),
                ('sub_type', models.CharField(blank=True, choices=[('CURRENT', 'Current'), ('NON_CURRENT', 'Non-current'), ('COGS', 'Cost of goods sold'), ('OPERATING', 'Operating'), ('OTHER', 'Other')], max_length=15)),
                ('normal_balance', models.CharField(choices=[('debit', 'Debit'), ('credit', 'Credit')], max_length=6)),
                ('is_system_account', models.BooleanField(default=False)),
                ('is_control_account', models.BooleanField(default=False)),
                ('is_tax_account', models.BooleanField(default=False)),
                ('is_bank_account', models.BooleanField(default=False)),
                ('description', models.TextField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='accounts', to='api.company')),
            ],
            options={
                'verbose_name': 'GL account',
                'ordering': ['company', 'account_number'],
                'unique_together': {('company', 'account_number')},
            },
        ),
        migrations.CreateModel(
            name='JournalSequence',
            fields=[
                ('company', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='journal_sequence', serialize=False, to='api.company')),
                ('last_number', models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name='JournalEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('entry_number', models.CharField(max_length=30)),
                ('date', models.DateField()),
                ('description', models.TextField()),
                ('reference', models.CharField(blank=True, max_length=255, null=True)),
                ('source_module', models.CharField(choices=[('MANUAL', 'Manual'), ('INVOICE', 'Invoice'), ('PAYMENT', 'Payment'), ('EXPENSE', 'Expense'), ('PAYROLL', 'Payroll'), ('POS', 'Point of sale'), ('REMITTANCE', 'Statutory remittance'), ('REVERSAL', 'Reversal')], default='MANUAL', max_length=15)),
                ('source_document_id', models.CharField(blank=True, max_length=64, null=True)),
                ('source_document_type', models.CharField(blank=True, max_length=50, null=True)),
                ('total_debits', money_field()),
                ('total_credits', money_field()),
                ('status', models.CharField(choices=[('POSTED', 'Posted')], default='POSTED', max_length=10)),
                ('is_reversed', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='journal_entries', to='api.company')),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='posted_journal_entries', to=settings.AUTH_USER_MODEL)),
                ('reversal_of', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='reversed_by', to='api.journalentry')),
            ],
            options={
                'verbose_name_plural': 'Journal Entries',
                'ordering': ['company', '-date', '-entry_number'],
            },
        ),
        migrations.AddConstraint(
            model_name='journalentry',
            constraint=models.UniqueConstraint(fields=('company', 'entry_number'), name='unique_entry_number_per_company'),
        ),
        migrations.CreateModel(
            name='JournalLine',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('line_number', models.PositiveIntegerField()),
                ('debit_amount', money_field()),
                ('credit_amount', money_field()),
                ('description', models.CharField(blank=True, max_length=255, null=True)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='journal_lines', to='api.glaccount')),
                ('journal_entry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='api.journalentry')),
            ],
            options={
                'ordering': ['journal_entry', 'line_number'],
                'unique_together': {('journal_entry', 'line_number')},
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=255)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('details', models.JSONField(blank=True, null=True)),
                ('company', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='api.company')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='PensionPlan',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('employee_rate', models.DecimalField(decimal_places=4, help_text='e.g. 0.0500 for 5%', max_digits=6)),
                ('employer_rate', models.DecimalField(decimal_places=4, default=decimal.Decimal('0.0000'), max_digits=6)),
                ('is_approved', models.BooleanField(default=False, help_text='Approved superannuation fund; contributions are tax-deductible')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pension_plans', to='api.company')),
            ],
            options={'unique_together': {('company', 'name')}},
        ),
        migrations.CreateModel(
            name='Employee',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('employee_number', models.CharField(blank=True, max_length=30)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('trn', models.CharField(blank=True, max_length=20)),
                ('nis_number', models.CharField(blank=True, max_length=20)),
                ('base_salary', models.DecimalField(decimal_places=2, help_text='Monthly basic salary', max_digits=19)),
                ('pay_frequency', models.CharField(choices=PAY_FREQUENCY_CHOICES, default='MONTHLY', max_length=10)),
                ('is_active', models.BooleanField(default=True)),
                ('hire_date', models.DateField(blank=True, null=True)),
                ('termination_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='employees', to='api.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_employees', to=settings.AUTH_USER_MODEL)),
                ('pension_plan', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='members', to='api.pensionplan')),
            ],
            options={'ordering': ['company', 'last_name', 'first_name']},
        ),
        migrations.CreateModel(
            name='LoanDeduction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('loan_type', models.CharField(choices=[('PERSONAL', 'Personal loan'), ('SALARY_ADVANCE', 'Salary advance'), ('STAFF_LOAN', 'Staff loan'), ('CREDIT_UNION', 'Credit union'), ('OTHER', 'Other')], default='OTHER', max_length=20)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('principal_amount', models.DecimalField(**MONEY)),
                ('monthly_deduction', models.DecimalField(**MONEY)),
                ('total_paid', money_field()),
                ('remaining_balance', models.DecimalField(**MONEY)),
                ('is_active', models.BooleanField(default=True)),
                ('start_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='loan_deductions', to='api.company')),
                ('employee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='loan_deductions', to='api.employee')),
            ],
            options={'ordering': ['employee', 'created_at']},
        ),
        migrations.CreateModel(
            name='PayrollRun',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('period_start', models.DateField()),
                ('period_end', models.DateField()),
                ('pay_date', models.DateField(help_text='Date employees will be paid')),
                ('frequency', models.CharField(choices=PAY_FREQUENCY_CHOICES, default='MONTHLY', max_length=10)),
                ('status', models.CharField(choices=[('DRAFT', 'Draft'), ('APPROVED', 'Approved'), ('PAID', 'Paid')], default='DRAFT', max_length=10)),
                ('total_gross', money_field()),
                ('total_deductions', money_field()),
                ('total_net', money_field()),
                ('total_employer_contributions', money_field()),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_payroll_runs', to=settings.AUTH_USER_MODEL)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payroll_runs', to='api.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_payroll_runs', to=settings.AUTH_USER_MODEL)),
                ('journal_entry', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='payroll_run', to='api.journalentry')),
                ('payment_journal_entry', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='paid_payroll_run', to='api.journalentry')),
            ],
            options={'ordering': ['company', '-pay_date']},
        ),
        migrations.CreateModel(
            name='PayrollEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('basic_salary', money_field()),
                ('overtime', money_field()),
                ('bonus', money_field()),
                ('commission', money_field()),
                ('allowances', money_field()),
                ('pension_contribution', money_field()),
                ('employer_pension', money_field()),
                ('loan_deductions', money_field()),
                ('gross_pay', models.DecimalField(**MONEY)),
                ('taxable_income', money_field()),
                ('paye', money_field()),
                ('nis', money_field()),
                ('nht', money_field()),
                ('education_tax', money_field()),
                ('other_deductions', money_field()),
                ('total_deductions', money_field()),
                ('net_pay', models.DecimalField(**MONEY)),
                ('employer_nis', money_field()),
                ('employer_nht', money_field()),
                ('employer_education_tax', money_field()),
                ('heart_contribution', money_field()),
                ('total_employer_contributions', money_field()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('employee', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payroll_entries', to='api.employee')),
                ('payroll_run', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='api.payrollrun')),
            ],
            options={
                'verbose_name_plural': 'Payroll entries',
                'ordering': ['payroll_run', 'employee__last_name', 'employee__first_name'],
                'unique_together': {('payroll_run', 'employee')},
            },
        ),
        migrations.CreateModel(
            name='StatutoryRemittance',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('remittance_type', models.CharField(choices=[('PAYE', 'PAYE (Income Tax)'), ('NIS', 'National Insurance Scheme'), ('NHT', 'National Housing Trust'), ('EDUCATION_TAX', 'Education Tax'), ('HEART_NTA', 'HEART/NTA')], max_length=15)),
                ('period_month', models.DateField(help_text='First day of the payroll month being remitted')),
                ('amount_due', models.DecimalField(**MONEY)),
                ('employee_portion', money_field()),
                ('employer_portion', money_field()),
                ('amount_paid', money_field()),
                ('due_date', models.DateField()),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('OVERDUE', 'Overdue'), ('PAID', 'Paid')], default='PENDING', max_length=10)),
                ('payment_date', models.DateField(blank=True, null=True)),
                ('reference_number', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='statutory_remittances', to='api.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_remittances', to=settings.AUTH_USER_MODEL)),
                ('journal_entry', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='remittance', to='api.journalentry')),
            ],
            options={
                'ordering': ['company', '-period_month', 'remittance_type'],
                'unique_together': {('company', 'remittance_type', 'period_month')},
            },
        ),
    ]

from django.db import models
from django.conf import settings
from django.db.models import Sum, Q
from django.core.exceptions import ValidationError
import uuid
from decimal import Decimal

from .exceptions import StateConflictError
from .tax_calculator import WEEKLY, BIWEEKLY, MONTHLY


class Company(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    trn = models.CharField(max_length=20, blank=True, help_text='Taxpayer Registration Number')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'Companies'

    def __str__(self):
        return self.name


class Membership(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='memberships')
    date_joined = models.DateField(auto_now_add=True)

    class Meta:
        unique_together = ('user', 'company')

    def __str__(self):
        return f'{self.user} in {self.company.name}'


class GLAccount(models.Model):
    ASSET = 'ASSET'
    LIABILITY = 'LIABILITY'
    EQUITY = 'EQUITY'
    INCOME = 'INCOME'
    EXPENSE = 'EXPENSE'
    ACCOUNT_TYPE_CHOICES = [
        (ASSET, 'Asset'), (LIABILITY, 'Liability'), (EQUITY, 'Equity'),
        (INCOME, 'Income'), (EXPENSE, 'Expense'),
    ]
    SUB_TYPE_CHOICES = [
        ('CURRENT', 'Current'), ('NON_CURRENT', 'Non-current'), ('COGS', 'Cost of goods sold'),
        ('OPERATING', 'Operating'), ('OTHER', 'Other'),
    ]
    DEBIT = 'debit'
    CREDIT = 'credit'
    NORMAL_BALANCE_CHOICES = [(DEBIT, 'Debit'), (CREDIT, 'Credit')]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='accounts')
    account_number = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=10, choices=ACCOUNT_TYPE_CHOICES)
    sub_type = models.CharField(max_length=15, choices=SUB_TYPE_CHOICES, blank=True)
    normal_balance = models.CharField(max_length=6, choices=NORMAL_BALANCE_CHOICES)
    is_system_account = models.BooleanField(default=False)
    is_control_account = models.BooleanField(default=False)
    is_tax_account = models.BooleanField(default=False)
    is_bank_account = models.BooleanField(default=False)
    description = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('company', 'account_number')
        ordering = ['company', 'account_number']
        verbose_name = 'GL account'

    def __str__(self):
        return f'{self.account_number} {self.name} ({self.get_type_display()})'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            stored = GLAccount.objects.filter(pk=self.pk).values('account_number', 'type', 'normal_balance').first()
            if stored is not None:
                if stored['account_number'] != self.account_number:
                    raise StateConflictError(
                        f'Account number {stored["account_number"]} cannot be changed to {self.account_number}.',
                        details={'account_id': str(self.pk)},
                    )
                if stored['type'] != self.type or stored['normal_balance'] != self.normal_balance:
                    raise StateConflictError(
                        f'Account {self.account_number} cannot change its type or normal balance.',
                        details={'account_id': str(self.pk)},
                    )
        super().save(*args, **kwargs)

    def signed(self, debits, credits):
        if self.normal_balance == self.DEBIT:
            return debits - credits
        return credits - debits

    def get_balance(self, date_to=None):
        totals = self.journal_lines.filter(
            Q(journal_entry__date__lte=date_to) if date_to else Q()
        ).aggregate(debits=Sum('debit_amount'), credits=Sum('credit_amount'))
        return self.signed(totals['debits'] or Decimal('0.00'), totals['credits'] or Decimal('0.00'))

    def get_period_activity(self, date_from, date_to):
        if not (date_from and date_to):
            raise ValueError('Both date_from and date_to are required for period activity.')
        totals = self.journal_lines.filter(
            journal_entry__date__gte=date_from, journal_entry__date__lte=date_to
        ).aggregate(debits=Sum('debit_amount'), credits=Sum('credit_amount'))
        return self.signed(totals['debits'] or Decimal('0.00'), totals['credits'] or Decimal('0.00'))


class JournalSequence(models.Model):
    '''Per-company counter behind journal entry numbers. Always read with select_for_update.'''
    company = models.OneToOneField(Company, on_delete=models.CASCADE, primary_key=True, related_name='journal_sequence')
    last_number = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f'{self.company.name}: {self.last_number}'


class JournalEntry(models.Model):
    MANUAL = 'MANUAL'
    INVOICE = 'INVOICE'
    PAYMENT = 'PAYMENT'
    EXPENSE = 'EXPENSE'
    PAYROLL = 'PAYROLL'
    POS = 'POS'
    REMITTANCE = 'REMITTANCE'
    REVERSAL = 'REVERSAL'
    SOURCE_MODULE_CHOICES = [
        (MANUAL, 'Manual'), (INVOICE, 'Invoice'), (PAYMENT, 'Payment'), (EXPENSE, 'Expense'),
        (PAYROLL, 'Payroll'), (POS, 'Point of sale'), (REMITTANCE, 'Statutory remittance'),
        (REVERSAL, 'Reversal'),
    ]
    POSTED = 'POSTED'
    STATUS_CHOICES = [(POSTED, 'Posted')]
    MUTABLE_AFTER_POSTING = frozenset({'is_reversed'})

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='journal_entries')
    entry_number = models.CharField(max_length=30)
    date = models.DateField()
    description = models.TextField()
    reference = models.CharField(max_length=255, blank=True, null=True)
    source_module = models.CharField(max_length=15, choices=SOURCE_MODULE_CHOICES, default=MANUAL)
    source_document_id = models.CharField(max_length=64, blank=True, null=True)
    source_document_type = models.CharField(max_length=50, blank=True, null=True)
    total_debits = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    total_credits = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=POSTED)
    is_reversed = models.BooleanField(default=False)
    reversal_of = models.OneToOneField(
        'self', on_delete=models.PROTECT, null=True, blank=True, related_name='reversed_by'
    )
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='posted_journal_entries')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = 'Journal Entries'
        ordering = ['company', '-date', '-entry_number']
        constraints = [
            models.UniqueConstraint(fields=['company', 'entry_number'], name='unique_entry_number_per_company'),
        ]

    def __str__(self):
        return f'{self.entry_number} on {self.date} for {self.company.name}'

    def clean(self):
        super().clean()
        if self.pk and self.lines.exists():
            totals = self.lines.aggregate(debits=Sum('debit_amount'), credits=Sum('credit_amount'))
            if (totals['debits'] or Decimal('0.00')) != (totals['credits'] or Decimal('0.00')):
                raise ValidationError('Debits must equal Credits for the journal entry.')

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get('update_fields')
            if update_fields is None or not set(update_fields) <= self.MUTABLE_AFTER_POSTING:
                raise StateConflictError(f'Journal entry {self.entry_number} is posted and cannot be edited.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise StateConflictError(f'Journal entry {self.entry_number} is posted; reverse it instead of deleting it.')


class JournalLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    journal_entry = models.ForeignKey(JournalEntry, on_delete=models.CASCADE, related_name='lines')
    line_number = models.PositiveIntegerField()
    account = models.ForeignKey(GLAccount, on_delete=models.PROTECT, related_name='journal_lines')
    debit_amount = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    credit_amount = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    description = models.CharField(max_length=255, blank=True, null=True)

    class Meta:
        ordering = ['journal_entry', 'line_number']
        unique_together = ('journal_entry', 'line_number')

    def __str__(self):
        if self.debit_amount > 0:
            return f'DEBIT {self.account.account_number} {self.account.name}: {self.debit_amount}'
        return f'CREDIT {self.account.account_number} {self.account.name}: {self.credit_amount}'

    def clean(self):
        super().clean()
        if self.debit_amount < Decimal('0.00') or self.credit_amount < Decimal('0.00'):
            raise ValidationError('Debit and Credit amounts cannot be negative.')
        if self.debit_amount > Decimal('0.00') and self.credit_amount > Decimal('0.00'):
            raise ValidationError('A journal line cannot be both a debit and a credit.')
        if self.debit_amount == Decimal('0.00') and self.credit_amount == Decimal('0.00'):
            raise ValidationError('Either debit or credit amount must be provided.')

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise StateConflictError('Posted journal lines cannot be edited.')
        self.clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise StateConflictError('Posted journal lines cannot be deleted.')


class AuditLog(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    company = models.ForeignKey(Company, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=255)
    timestamp = models.DateTimeField(auto_now_add=True)
    details = models.JSONField(blank=True, null=True)

    def __str__(self):
        return f'{self.action} by {self.user if self.user else "System"} at {self.timestamp}'


PAY_FREQUENCY_CHOICES = [
    (WEEKLY, 'Weekly'),
    (BIWEEKLY, 'Bi-weekly'),
    (MONTHLY, 'Monthly'),
]


class PensionPlan(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='pension_plans')
    name = models.CharField(max_length=255)
    employee_rate = models.DecimalField(max_digits=6, decimal_places=4, help_text='e.g. 0.0500 for 5%')
    employer_rate = models.DecimalField(max_digits=6, decimal_places=4, default=Decimal('0.0000'))
    is_approved = models.BooleanField(default=False, help_text='Approved superannuation fund; contributions are tax-deductible')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('company', 'name')

    def __str__(self):
        return f'{self.name} ({self.employee_rate}/{self.employer_rate})'


class Employee(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='employees')
    employee_number = models.CharField(max_length=30, blank=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True, null=True)
    trn = models.CharField(max_length=20, blank=True)
    nis_number = models.CharField(max_length=20, blank=True)
    base_salary = models.DecimalField(max_digits=19, decimal_places=2, help_text='Monthly basic salary')
    pay_frequency = models.CharField(max_length=10, choices=PAY_FREQUENCY_CHOICES, default=MONTHLY)
    pension_plan = models.ForeignKey(PensionPlan, on_delete=models.SET_NULL, null=True, blank=True, related_name='members')
    is_active = models.BooleanField(default=True)
    hire_date = models.DateField(null=True, blank=True)
    termination_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_employees')

    class Meta:
        ordering = ['company', 'last_name', 'first_name']

    def __str__(self):
        return f'{self.first_name} {self.last_name} ({self.company.name})'

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'


class LoanDeduction(models.Model):
    PERSONAL = 'PERSONAL'
    SALARY_ADVANCE = 'SALARY_ADVANCE'
    STAFF_LOAN = 'STAFF_LOAN'
    CREDIT_UNION = 'CREDIT_UNION'
    OTHER = 'OTHER'
    LOAN_TYPE_CHOICES = [
        (PERSONAL, 'Personal loan'), (SALARY_ADVANCE, 'Salary advance'), (STAFF_LOAN, 'Staff loan'),
        (CREDIT_UNION, 'Credit union'), (OTHER, 'Other'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='loan_deductions')
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='loan_deductions')
    loan_type = models.CharField(max_length=20, choices=LOAN_TYPE_CHOICES, default=OTHER)
    description = models.CharField(max_length=255, blank=True)
    principal_amount = models.DecimalField(max_digits=19, decimal_places=2)
    monthly_deduction = models.DecimalField(max_digits=19, decimal_places=2)
    total_paid = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    remaining_balance = models.DecimalField(max_digits=19, decimal_places=2)
    is_active = models.BooleanField(default=True)
    start_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['employee', 'created_at']

    def __str__(self):
        return f'{self.get_loan_type_display()} for {self.employee.full_name}: {self.remaining_balance} remaining'

    def clean(self):
        super().clean()
        if self.monthly_deduction is not None and self.monthly_deduction <= Decimal('0.00'):
            raise ValidationError('Monthly deduction must be positive.')
        if self.remaining_balance is not None and self.remaining_balance < Decimal('0.00'):
            raise ValidationError('Remaining balance cannot be negative.')


class PayrollRun(models.Model):
    '''A payroll cycle for a batch of employees. DRAFT -> APPROVED (posted) -> PAID.'''
    DRAFT = 'DRAFT'
    APPROVED = 'APPROVED'
    PAID = 'PAID'
    STATUS_CHOICES = [
        (DRAFT, 'Draft'),
        (APPROVED, 'Approved'),
        (PAID, 'Paid'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='payroll_runs')
    period_start = models.DateField()
    period_end = models.DateField()
    pay_date = models.DateField(help_text='Date employees will be paid')
    frequency = models.CharField(max_length=10, choices=PAY_FREQUENCY_CHOICES, default=MONTHLY)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=DRAFT)
    total_gross = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    total_deductions = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    total_net = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    total_employer_contributions = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    journal_entry = models.OneToOneField(JournalEntry, on_delete=models.PROTECT, null=True, blank=True, related_name='payroll_run')
    payment_journal_entry = models.OneToOneField(
        JournalEntry, on_delete=models.PROTECT, null=True, blank=True, related_name='paid_payroll_run'
    )
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_payroll_runs')
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_payroll_runs')
    approved_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['company', '-pay_date']

    def __str__(self):
        return f'Payroll for {self.company.name} ({self.period_start} to {self.period_end}) [{self.status}]'


class PayrollEntry(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payroll_run = models.ForeignKey(PayrollRun, on_delete=models.CASCADE, related_name='entries')
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name='payroll_entries')

    basic_salary = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    overtime = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    bonus = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    commission = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    allowances = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    pension_contribution = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    employer_pension = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    loan_deductions = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))

    gross_pay = models.DecimalField(max_digits=19, decimal_places=2)
    taxable_income = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    paye = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    nis = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    nht = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    education_tax = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    other_deductions = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    total_deductions = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    net_pay = models.DecimalField(max_digits=19, decimal_places=2)

    employer_nis = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    employer_nht = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    employer_education_tax = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    heart_contribution = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    total_employer_contributions = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('payroll_run', 'employee')
        ordering = ['payroll_run', 'employee__last_name', 'employee__first_name']
        verbose_name_plural = 'Payroll entries'

    def __str__(self):
        return f'Payroll entry for {self.employee} - run {self.payroll_run_id}'

    def save(self, *args, **kwargs):
        if self.payroll_run.status != PayrollRun.DRAFT:
            raise StateConflictError(
                f'Payroll run {self.payroll_run_id} is {self.payroll_run.status}; its entries are locked.'
            )
        super().save(*args, **kwargs)


class StatutoryRemittance(models.Model):
    PAYE = 'PAYE'
    NIS = 'NIS'
    NHT = 'NHT'
    EDUCATION_TAX = 'EDUCATION_TAX'
    HEART_NTA = 'HEART_NTA'
    REMITTANCE_TYPE_CHOICES = [
        (PAYE, 'PAYE (Income Tax)'),
        (NIS, 'National Insurance Scheme'),
        (NHT, 'National Housing Trust'),
        (EDUCATION_TAX, 'Education Tax'),
        (HEART_NTA, 'HEART/NTA'),
    ]
    PENDING = 'PENDING'
    OVERDUE = 'OVERDUE'
    PAID = 'PAID'
    STATUS_CHOICES = [(PENDING, 'Pending'), (OVERDUE, 'Overdue'), (PAID, 'Paid')]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='statutory_remittances')
    remittance_type = models.CharField(max_length=15, choices=REMITTANCE_TYPE_CHOICES)
    period_month = models.DateField(help_text='First day of the payroll month being remitted')
    amount_due = models.DecimalField(max_digits=19, decimal_places=2)
    employee_portion = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    employer_portion = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal('0.00'))
    due_date = models.DateField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    payment_date = models.DateField(null=True, blank=True)
    reference_number = models.CharField(max_length=100, blank=True, null=True)
    journal_entry = models.OneToOneField(JournalEntry, on_delete=models.PROTECT, null=True, blank=True, related_name='remittance')
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_remittances')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('company', 'remittance_type', 'period_month')
        ordering = ['company', '-period_month', 'remittance_type']

    def __str__(self):
        return f'{self.get_remittance_type_display()} {self.period_month:%Y-%m} for {self.company.name}: {self.amount_due} [{self.status}]'

    @property
    def outstanding(self):
        return self.amount_due - self.amount_paid

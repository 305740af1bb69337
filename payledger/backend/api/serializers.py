from rest_framework import serializers
from decimal import Decimal
from .models import (
    GLAccount, JournalEntry, JournalLine, AuditLog,
    PensionPlan, Employee, LoanDeduction, PayrollRun, PayrollEntry, StatutoryRemittance,
    PAY_FREQUENCY_CHOICES,
)
from .posting_templates import TENDER_METHODS, BANK_TRANSFER
from .tax_calculator import MONTHLY


def _request_company(serializer):
    request = serializer.context.get('request')
    if request is None or not request.user.is_authenticated:
        return None
    membership = request.user.membership_set.first()
    return membership.company if membership else None


class GLAccountSerializer(serializers.ModelSerializer):
    company = serializers.PrimaryKeyRelatedField(read_only=True)
    balance = serializers.SerializerMethodField()

    class Meta:
        model = GLAccount
        fields = [
            'id', 'company', 'account_number', 'name', 'type', 'sub_type', 'normal_balance',
            'is_system_account', 'is_control_account', 'is_tax_account', 'is_bank_account',
            'description', 'is_active', 'balance', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'company', 'is_system_account', 'balance', 'created_at', 'updated_at']

    def get_balance(self, obj):
        return obj.get_balance()

    def validate_account_number(self, value):
        if self.instance is not None:
            if value != self.instance.account_number:
                raise serializers.ValidationError('Account number cannot be changed once created.')
            return value
        company = _request_company(self)
        if company and GLAccount.objects.filter(company=company, account_number=value).exists():
            raise serializers.ValidationError(f'Account number {value} already exists.')
        return value

    def validate(self, data):
        if self.instance is None:
            return data
        errors = {}
        for field in ('type', 'normal_balance'):
            if field in data and data[field] != getattr(self.instance, field):
                errors[field] = f'{field} cannot be changed once the account is created.'
        if self.instance.is_system_account and 'name' in data and data['name'] != self.instance.name:
            errors['name'] = 'System account names are fixed by the default chart.'
        if errors:
            raise serializers.ValidationError(errors)
        return data


class JournalLineSerializer(serializers.ModelSerializer):
    account_number = serializers.CharField(source='account.account_number', read_only=True)
    account_name = serializers.CharField(source='account.name', read_only=True)

    class Meta:
        model = JournalLine
        fields = ['id', 'line_number', 'account', 'account_number', 'account_name', 'debit_amount', 'credit_amount', 'description']


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)
    company = serializers.PrimaryKeyRelatedField(read_only=True)
    created_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = JournalEntry
        fields = [
            'id', 'company', 'entry_number', 'date', 'description', 'reference',
            'source_module', 'source_document_id', 'source_document_type',
            'total_debits', 'total_credits', 'status', 'is_reversed', 'reversal_of',
            'lines', 'created_by', 'created_at',
        ]
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    account_number = serializers.CharField(max_length=20)
    debit_amount = serializers.DecimalField(max_digits=19, decimal_places=2, min_value=Decimal('0.00'), default=Decimal('0.00'))
    credit_amount = serializers.DecimalField(max_digits=19, decimal_places=2, min_value=Decimal('0.00'), default=Decimal('0.00'))
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class JournalEntryInputSerializer(serializers.Serializer):
    date = serializers.DateField()
    description = serializers.CharField()
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    lines = JournalLineInputSerializer(many=True)

    def validate_lines(self, lines):
        if not lines or len(lines) < 2:
            raise serializers.ValidationError('A journal entry must have at least two lines.')
        return lines


class ReverseJournalEntrySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True)


class AuditLogSerializer(serializers.ModelSerializer):
    user = serializers.StringRelatedField()

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'company', 'action', 'timestamp', 'details']


class PensionPlanSerializer(serializers.ModelSerializer):
    company = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = PensionPlan
        fields = ['id', 'company', 'name', 'employee_rate', 'employer_rate', 'is_approved', 'is_active', 'created_at']
        read_only_fields = ['id', 'company', 'created_at']


class EmployeeSerializer(serializers.ModelSerializer):
    company = serializers.PrimaryKeyRelatedField(read_only=True)
    pension_plan = serializers.PrimaryKeyRelatedField(queryset=PensionPlan.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Employee
        fields = [
            'id', 'company', 'employee_number', 'first_name', 'last_name', 'email', 'trn', 'nis_number',
            'base_salary', 'pay_frequency', 'pension_plan', 'is_active', 'hire_date', 'termination_date',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'company', 'created_at', 'updated_at']

    def validate_pension_plan(self, plan):
        company = _request_company(self)
        if plan and company and plan.company_id != company.id:
            raise serializers.ValidationError('Pension plan does not belong to your company.')
        return plan


class LoanDeductionSerializer(serializers.ModelSerializer):
    company = serializers.PrimaryKeyRelatedField(read_only=True)
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    remaining_balance = serializers.DecimalField(max_digits=19, decimal_places=2, required=False)

    class Meta:
        model = LoanDeduction
        fields = [
            'id', 'company', 'employee', 'loan_type', 'description', 'principal_amount', 'monthly_deduction',
            'total_paid', 'remaining_balance', 'is_active', 'start_date', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'company', 'total_paid', 'created_at', 'updated_at']

    def validate_employee(self, employee):
        company = _request_company(self)
        if company and employee.company_id != company.id:
            raise serializers.ValidationError('Employee does not belong to your company.')
        return employee

    def validate(self, data):
        if data.get('monthly_deduction') is not None and data['monthly_deduction'] <= Decimal('0.00'):
            raise serializers.ValidationError({'monthly_deduction': 'Monthly deduction must be positive.'})
        if self.instance is None and data.get('remaining_balance') is None:
            data['remaining_balance'] = data['principal_amount']
        return data


class PayrollEntrySerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.full_name', read_only=True)

    class Meta:
        model = PayrollEntry
        fields = [
            'id', 'employee', 'employee_name',
            'basic_salary', 'overtime', 'bonus', 'commission', 'allowances',
            'pension_contribution', 'employer_pension', 'loan_deductions',
            'gross_pay', 'taxable_income', 'paye', 'nis', 'nht', 'education_tax', 'other_deductions',
            'total_deductions', 'net_pay',
            'employer_nis', 'employer_nht', 'employer_education_tax', 'heart_contribution',
            'total_employer_contributions',
        ]
        read_only_fields = fields


class PayrollRunSerializer(serializers.ModelSerializer):
    entries = PayrollEntrySerializer(many=True, read_only=True)
    journal_entry_number = serializers.CharField(source='journal_entry.entry_number', read_only=True, default=None)

    class Meta:
        model = PayrollRun
        fields = [
            'id', 'company', 'period_start', 'period_end', 'pay_date', 'frequency', 'status',
            'total_gross', 'total_deductions', 'total_net', 'total_employer_contributions',
            'journal_entry', 'journal_entry_number', 'payment_journal_entry', 'notes', 'entries',
            'created_by', 'created_at', 'approved_by', 'approved_at', 'paid_at',
        ]
        read_only_fields = fields


class PayrollEmployeeInputSerializer(serializers.Serializer):
    employee_id = serializers.UUIDField()
    basic_salary = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, allow_null=True)
    overtime = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, default=Decimal('0.00'))
    bonus = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, default=Decimal('0.00'))
    commission = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, default=Decimal('0.00'))
    allowances = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, default=Decimal('0.00'))
    pension_contribution = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, min_value=Decimal('0.00'), default=Decimal('0.00'))
    other_deductions = serializers.DecimalField(max_digits=19, decimal_places=2, required=False, min_value=Decimal('0.00'), default=Decimal('0.00'))


class PayrollRunCreateSerializer(serializers.Serializer):
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    pay_date = serializers.DateField()
    frequency = serializers.ChoiceField(choices=PAY_FREQUENCY_CHOICES, default=MONTHLY)
    employees = PayrollEmployeeInputSerializer(many=True)

    def validate(self, data):
        if data['period_end'] < data['period_start']:
            raise serializers.ValidationError({'period_end': 'period_end cannot be before period_start.'})
        if not data['employees']:
            raise serializers.ValidationError({'employees': 'At least one employee is required.'})
        return data


class MarkPayrollPaidSerializer(serializers.Serializer):
    payment_date = serializers.DateField(required=False)
    method = serializers.ChoiceField(choices=TENDER_METHODS, default=BANK_TRANSFER)


class StatutoryRemittanceSerializer(serializers.ModelSerializer):
    journal_entry_number = serializers.CharField(source='journal_entry.entry_number', read_only=True, default=None)

    class Meta:
        model = StatutoryRemittance
        fields = [
            'id', 'company', 'remittance_type', 'period_month', 'amount_due', 'employee_portion',
            'employer_portion', 'amount_paid', 'due_date', 'status', 'payment_date', 'reference_number',
            'journal_entry', 'journal_entry_number', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class GenerateRemittancesSerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    month = serializers.IntegerField(min_value=1, max_value=12)


class PayRemittanceSerializer(serializers.Serializer):
    payment_date = serializers.DateField(required=False)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    method = serializers.ChoiceField(choices=TENDER_METHODS, default=BANK_TRANSFER)


class BackPayRequestSerializer(serializers.Serializer):
    employee_id = serializers.UUIDField()
    old_salary = serializers.DecimalField(max_digits=19, decimal_places=2, required=False)
    new_salary = serializers.DecimalField(max_digits=19, decimal_places=2)
    effective_date = serializers.DateField()
    through_date = serializers.DateField()
    frequency = serializers.ChoiceField(choices=PAY_FREQUENCY_CHOICES, required=False)

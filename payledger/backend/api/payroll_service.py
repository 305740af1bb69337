import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction as db_transaction
from django.db.models import Count, Sum
from django.utils import timezone

from . import posting_templates
from .exceptions import ValidationError, StateConflictError
from .models import (
    AuditLog, Company, Employee, LoanDeduction, PayrollEntry, PayrollRun,
)
from .posting_service import post_draft
from .tax_calculator import JAMAICA_RATES, MONTHLY, ZERO, calculate_payroll, money

logger = logging.getLogger(__name__)

YTD_STATUSES = (PayrollRun.DRAFT, PayrollRun.APPROVED, PayrollRun.PAID)


@dataclass(frozen=True)
class YTDTotals:
    gross: Decimal = ZERO
    nis: Decimal = ZERO
    taxable: Decimal = ZERO
    paye: Decimal = ZERO
    periods: int = 0


def get_fiscal_year_start(day: date):
    start_month = getattr(settings, 'PAYLEDGER_FISCAL_YEAR_START_MONTH', 4)
    year = day.year if day.month >= start_month else day.year - 1
    return date(year, start_month, 1)


def period_salary(monthly_salary, frequency, rates=JAMAICA_RATES):
    '''Convert a monthly salary to the amount for one pay period of ``frequency``.'''
    if frequency == MONTHLY:
        return money(monthly_salary)
    return money(Decimal(monthly_salary) * 12 / rates.periods(frequency))


def get_ytd_totals(company: Company, employee_ids, period_start: date):
    '''Fiscal-year-to-date sums per employee from runs ending before ``period_start``.'''
    fiscal_start = get_fiscal_year_start(period_start)
    rows = (
        PayrollEntry.objects
        .filter(
            payroll_run__company=company,
            payroll_run__status__in=YTD_STATUSES,
            payroll_run__period_end__gte=fiscal_start,
            payroll_run__period_end__lt=period_start,
            employee_id__in=list(employee_ids),
        )
        .values('employee_id')
        .annotate(
            gross=Sum('gross_pay'), nis=Sum('nis'), taxable=Sum('taxable_income'), paye=Sum('paye'),
            periods=Count('id'),
        )
    )
    return {
        str(row['employee_id']): YTDTotals(
            gross=row['gross'] or ZERO, nis=row['nis'] or ZERO,
            taxable=row['taxable'] or ZERO, paye=row['paye'] or ZERO, periods=row['periods'],
        )
        for row in rows
    }


def _decimal_input(emp_input, key, default=ZERO):
    value = emp_input.get(key)
    if value is None or value == '':
        return default
    try:
        return money(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{key} must be a number, got {value!r}', details={'employee_id': emp_input.get('employee_id')}) from None


def _validate_employee_ids(employee_inputs):
    if not employee_inputs:
        raise ValidationError('A payroll run needs at least one employee.')
    ids = []
    for emp_input in employee_inputs:
        raw_id = emp_input.get('employee_id')
        try:
            ids.append(str(uuid.UUID(str(raw_id))))
        except (ValueError, TypeError, AttributeError):
            raise ValidationError(f'Invalid employee_id: {raw_id!r}') from None
    duplicates = sorted({employee_id for employee_id in ids if ids.count(employee_id) > 1})
    if duplicates:
        raise ValidationError('Employees may appear only once per payroll run.', details={'duplicates': duplicates})
    return ids


def _plan_pension(employee: Employee, pension_base):
    plan = employee.pension_plan
    if plan is None or not plan.is_active or not plan.is_approved:
        return ZERO, ZERO
    return money(pension_base * plan.employee_rate), money(pension_base * plan.employer_rate)


@db_transaction.atomic
def create_payroll_run(company: Company, user, period_start, period_end, pay_date, frequency, employee_inputs: list):
    '''
    Calculate every employee in the batch and persist a DRAFT run with its entries.
    Loan balances are drawn down in the same transaction. Nothing is posted to the ledger.
    '''
    JAMAICA_RATES.periods(frequency)
    if not (period_start and period_end and pay_date):
        raise ValidationError('period_start, period_end and pay_date are required.')
    if period_end < period_start:
        raise ValidationError('period_end cannot be before period_start.')

    ids = _validate_employee_ids(employee_inputs)
    employees = {
        str(employee.id): employee
        for employee in Employee.objects.filter(company=company, id__in=ids, is_active=True).select_related('pension_plan')
    }
    missing = [employee_id for employee_id in ids if employee_id not in employees]
    if missing:
        raise ValidationError('Some employees were not found or are inactive.', details={'employee_ids': missing})

    ytd_by_employee = get_ytd_totals(company, ids, period_start)

    loans_by_employee = defaultdict(list)
    active_loans = (
        LoanDeduction.objects.select_for_update()
        .filter(company=company, employee_id__in=ids, is_active=True, remaining_balance__gt=ZERO)
        .order_by('created_at')
    )
    for loan in active_loans:
        loans_by_employee[str(loan.employee_id)].append(loan)

    payroll_run = PayrollRun.objects.create(
        company=company, period_start=period_start, period_end=period_end, pay_date=pay_date,
        frequency=frequency, status=PayrollRun.DRAFT, created_by=user,
    )

    total_gross = total_deductions = total_net = total_employer = ZERO
    for employee_id, emp_input in zip(ids, employee_inputs):
        employee = employees[employee_id]
        basic = _decimal_input(emp_input, 'basic_salary', default=None)
        if basic is None:
            basic = period_salary(employee.base_salary, frequency)
        overtime = _decimal_input(emp_input, 'overtime')
        bonus = _decimal_input(emp_input, 'bonus')
        commission = _decimal_input(emp_input, 'commission')
        allowances = _decimal_input(emp_input, 'allowances')
        explicit_pension = _decimal_input(emp_input, 'pension_contribution')
        other_deductions = _decimal_input(emp_input, 'other_deductions')

        plan_pension, employer_pension = _plan_pension(employee, basic + overtime + bonus + commission)
        pension = max(explicit_pension, plan_pension)

        repayments = []
        if basic + overtime + bonus + commission + allowances > ZERO:
            for loan in loans_by_employee[employee_id]:
                repayments.append((loan, min(loan.monthly_deduction, loan.remaining_balance)))
        loan_total = sum((amount for _, amount in repayments), ZERO)

        ytd = ytd_by_employee.get(employee_id, YTDTotals())
        calc = calculate_payroll(
            basic, overtime, bonus, commission, allowances,
            pension_contribution=pension,
            other_deductions=other_deductions + loan_total,
            frequency=frequency,
            ytd_gross=ytd.gross, ytd_nis=ytd.nis, ytd_taxable=ytd.taxable, ytd_paye=ytd.paye,
            period_number=ytd.periods + 1,
        )

        PayrollEntry.objects.create(
            payroll_run=payroll_run, employee=employee,
            basic_salary=basic, overtime=overtime, bonus=bonus, commission=commission, allowances=allowances,
            pension_contribution=calc.pension_contribution, employer_pension=employer_pension,
            loan_deductions=loan_total,
            gross_pay=calc.gross_pay, taxable_income=calc.statutory_income,
            paye=calc.employee.tax, nis=calc.employee.nis, nht=calc.employee.nht,
            education_tax=calc.employee.education_tax, other_deductions=calc.employee.other,
            total_deductions=calc.employee.total, net_pay=calc.net_pay,
            employer_nis=calc.employer.nis, employer_nht=calc.employer.nht,
            employer_education_tax=calc.employer.education_tax, heart_contribution=calc.employer.skills_levy,
            total_employer_contributions=calc.employer.total,
        )

        for loan, amount in repayments:
            loan.total_paid += amount
            loan.remaining_balance -= amount
            if loan.remaining_balance <= ZERO:
                loan.is_active = False
                logger.info(f'Loan {loan.id} for employee {employee.full_name} fully repaid; deactivated.')
            loan.save(update_fields=['total_paid', 'remaining_balance', 'is_active', 'updated_at'])

        total_gross += calc.gross_pay
        total_deductions += calc.employee.total
        total_net += calc.net_pay
        total_employer += calc.employer.total

    payroll_run.total_gross = total_gross
    payroll_run.total_deductions = total_deductions
    payroll_run.total_net = total_net
    payroll_run.total_employer_contributions = total_employer
    payroll_run.save(update_fields=['total_gross', 'total_deductions', 'total_net', 'total_employer_contributions'])

    AuditLog.objects.create(
        company=company, user=user, action='created_payroll_run',
        details={'payroll_run_id': str(payroll_run.id), 'employees': len(ids), 'total_gross': str(total_gross)},
    )
    logger.info(
        f'PayrollRun {payroll_run.id} created for company {company.name}: {len(ids)} employees, '
        f'gross {total_gross}, net {total_net}.'
    )
    return payroll_run


def aggregate_run_totals(payroll_run: PayrollRun):
    sums = payroll_run.entries.aggregate(
        gross=Sum('gross_pay'), paye=Sum('paye'), nis=Sum('nis'), nht=Sum('nht'),
        education_tax=Sum('education_tax'), other_deductions=Sum('other_deductions'), net=Sum('net_pay'),
        employer_nis=Sum('employer_nis'), employer_nht=Sum('employer_nht'),
        employer_education_tax=Sum('employer_education_tax'), heart=Sum('heart_contribution'),
    )
    return posting_templates.PayrollTotals(**{key: value or ZERO for key, value in sums.items()})


@db_transaction.atomic
def approve_payroll_run(payroll_run: PayrollRun, user):
    '''Post a DRAFT run to the ledger and mark it APPROVED.'''
    run = PayrollRun.objects.select_for_update().select_related('company').get(pk=payroll_run.pk)
    if run.status != PayrollRun.DRAFT:
        logger.warning(f'Refused to approve PayrollRun {run.id}: status is {run.status}.')
        raise StateConflictError(
            f'Only DRAFT payroll runs can be approved. Current status: {run.status}',
            details={'payroll_run_id': str(run.id), 'status': run.status},
        )
    if not run.entries.exists():
        raise ValidationError('Payroll run has no entries to approve.')

    totals = aggregate_run_totals(run)
    draft = posting_templates.payroll_run_posted(run.id, run.pay_date, run.period_start, run.period_end, totals)
    journal_entry = post_draft(run.company, user, draft)

    run.total_gross = totals.gross
    run.total_deductions = money(totals.paye + totals.nis + totals.nht + totals.education_tax + totals.other_deductions)
    run.total_net = totals.net
    run.total_employer_contributions = totals.employer_total
    run.status = PayrollRun.APPROVED
    run.journal_entry = journal_entry
    run.approved_by = user
    run.approved_at = timezone.now()
    run.save()

    AuditLog.objects.create(
        company=run.company, user=user, action='approved_payroll_run',
        details={'payroll_run_id': str(run.id), 'journal_entry': journal_entry.entry_number},
    )
    logger.info(f'PayrollRun {run.id} approved. Journal entry {journal_entry.entry_number}.')
    return run


@db_transaction.atomic
def mark_payroll_run_paid(payroll_run: PayrollRun, user, payment_date=None, method=posting_templates.BANK_TRANSFER):
    '''Record payment of net wages for an APPROVED run.'''
    run = PayrollRun.objects.select_for_update().select_related('company').get(pk=payroll_run.pk)
    if run.status != PayrollRun.APPROVED:
        logger.warning(f'Refused to mark PayrollRun {run.id} paid: status is {run.status}.')
        raise StateConflictError(
            f'Only APPROVED payroll runs can be marked paid. Current status: {run.status}',
            details={'payroll_run_id': str(run.id), 'status': run.status},
        )
    payment_date = payment_date or run.pay_date
    draft = posting_templates.payroll_run_paid(
        run.id, payment_date, run.period_start, run.period_end, run.total_net, method=method
    )
    journal_entry = post_draft(run.company, user, draft)

    run.status = PayrollRun.PAID
    run.payment_journal_entry = journal_entry
    run.paid_at = timezone.now()
    run.save(update_fields=['status', 'payment_journal_entry', 'paid_at'])

    AuditLog.objects.create(
        company=run.company, user=user, action='paid_payroll_run',
        details={'payroll_run_id': str(run.id), 'journal_entry': journal_entry.entry_number},
    )
    logger.info(f'PayrollRun {run.id} paid. Journal entry {journal_entry.entry_number}.')
    return run

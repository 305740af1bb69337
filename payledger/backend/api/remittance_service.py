import logging
from calendar import monthrange
from datetime import date

from django.conf import settings
from django.db import DatabaseError, transaction as db_transaction
from django.db.models import Sum
from django.utils import timezone

from . import posting_templates
from .exceptions import ValidationError, StateConflictError, PersistenceError
from .models import AuditLog, Company, PayrollEntry, PayrollRun, StatutoryRemittance
from .posting_service import post_draft
from .tax_calculator import ZERO, money

logger = logging.getLogger(__name__)

REMITTABLE_RUN_STATUSES = (PayrollRun.APPROVED, PayrollRun.PAID)

# remittance type -> (employee field, employer field) on PayrollEntry
REMITTANCE_FIELDS = {
    StatutoryRemittance.PAYE: ('paye', None),
    StatutoryRemittance.NIS: ('nis', 'employer_nis'),
    StatutoryRemittance.NHT: ('nht', 'employer_nht'),
    StatutoryRemittance.EDUCATION_TAX: ('education_tax', 'employer_education_tax'),
    StatutoryRemittance.HEART_NTA: (None, 'heart_contribution'),
}


def get_due_date(period_month: date):
    '''Remittances fall due on a fixed day of the following month.'''
    due_day = getattr(settings, 'PAYLEDGER_REMITTANCE_DUE_DAY', 14)
    if period_month.month == 12:
        return date(period_month.year + 1, 1, due_day)
    return date(period_month.year, period_month.month + 1, due_day)


def _status_for(due_date, today):
    return StatutoryRemittance.OVERDUE if today > due_date else StatutoryRemittance.PENDING


def aggregate_month(company: Company, year: int, month: int):
    '''Employee and employer totals per remittance type for runs whose period ends in the month.'''
    month_start = date(year, month, 1)
    month_end = date(year, month, monthrange(year, month)[1])
    entries = PayrollEntry.objects.filter(
        payroll_run__company=company,
        payroll_run__status__in=REMITTABLE_RUN_STATUSES,
        payroll_run__period_end__gte=month_start,
        payroll_run__period_end__lte=month_end,
    )
    if not entries.exists():
        return None
    fields = {name for pair in REMITTANCE_FIELDS.values() for name in pair if name}
    sums = entries.aggregate(**{name: Sum(name) for name in fields})
    totals = {}
    for remittance_type, (employee_field, employer_field) in REMITTANCE_FIELDS.items():
        employee_portion = money(sums[employee_field] or ZERO) if employee_field else ZERO
        employer_portion = money(sums[employer_field] or ZERO) if employer_field else ZERO
        totals[remittance_type] = (employee_portion, employer_portion)
    return totals


def generate_remittances(company: Company, user, year: int, month: int, today=None):
    '''
    Upsert one StatutoryRemittance per type for the month. Existing unpaid records get the
    new amounts and keep their payment history; PAID records are never touched.
    '''
    try:
        year, month = int(year), int(month)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid remittance period: {year!r}-{month!r}') from None
    if not 1 <= month <= 12:
        raise ValidationError(f'Month must be between 1 and 12, got {month}.')
    today = today or timezone.localdate()

    try:
        with db_transaction.atomic():
            totals = aggregate_month(company, year, month)
            if totals is None:
                raise ValidationError(
                    f'No approved payroll runs found for {year}-{month:02d}.',
                    details={'year': year, 'month': month},
                )
            period_month = date(year, month, 1)
            due_date = get_due_date(period_month)
            remittances = []
            for remittance_type, (employee_portion, employer_portion) in totals.items():
                amount_due = employee_portion + employer_portion
                if amount_due <= ZERO:
                    continue
                remittance, created = StatutoryRemittance.objects.select_for_update().get_or_create(
                    company=company, remittance_type=remittance_type, period_month=period_month,
                    defaults={
                        'amount_due': amount_due,
                        'employee_portion': employee_portion,
                        'employer_portion': employer_portion,
                        'due_date': due_date,
                        'status': _status_for(due_date, today),
                        'created_by': user,
                    },
                )
                if not created:
                    if remittance.status == StatutoryRemittance.PAID:
                        logger.info(f'{remittance_type} remittance for {period_month:%Y-%m} already paid; left unchanged.')
                        continue
                    remittance.amount_due = amount_due
                    remittance.employee_portion = employee_portion
                    remittance.employer_portion = employer_portion
                    if remittance.status == StatutoryRemittance.PENDING:
                        remittance.status = _status_for(remittance.due_date, today)
                    remittance.save(update_fields=['amount_due', 'employee_portion', 'employer_portion', 'status', 'updated_at'])
                remittances.append(remittance)

            AuditLog.objects.create(
                company=company, user=user, action='generated_remittances',
                details={'period': f'{year}-{month:02d}', 'types': [r.remittance_type for r in remittances]},
            )
    except DatabaseError as exc:
        logger.error(f'Failed to generate remittances for {year}-{month:02d}, company {company.id}: {exc}')
        raise PersistenceError(f'Failed to generate remittances: {exc}') from exc

    logger.info(f'Generated {len(remittances)} remittances for {year}-{month:02d}, company {company.name}.')
    return remittances


@db_transaction.atomic
def pay_remittance(remittance: StatutoryRemittance, user, payment_date=None, reference_number=None,
                   method=posting_templates.BANK_TRANSFER):
    remittance = StatutoryRemittance.objects.select_for_update().select_related('company').get(pk=remittance.pk)
    if remittance.status == StatutoryRemittance.PAID:
        logger.warning(f'Refused to pay remittance {remittance.id}: already PAID.')
        raise StateConflictError(
            f'{remittance.remittance_type} remittance for {remittance.period_month:%Y-%m} is already paid.',
            details={'remittance_id': str(remittance.id)},
        )
    outstanding = remittance.outstanding
    if outstanding <= ZERO:
        raise ValidationError('Nothing is outstanding on this remittance.')

    employer_share = ZERO
    if remittance.amount_due > ZERO:
        employer_share = money(outstanding * remittance.employer_portion / remittance.amount_due)
    payment_date = payment_date or timezone.localdate()
    draft = posting_templates.remittance_paid(
        remittance.id, payment_date, remittance.remittance_type, f'{remittance.period_month:%Y-%m}',
        employee_amount=outstanding - employer_share, employer_amount=employer_share,
        method=method, reference=reference_number,
    )
    journal_entry = post_draft(remittance.company, user, draft)

    remittance.amount_paid = remittance.amount_due
    remittance.payment_date = payment_date
    remittance.reference_number = reference_number or remittance.reference_number
    remittance.status = StatutoryRemittance.PAID
    remittance.journal_entry = journal_entry
    remittance.save()

    AuditLog.objects.create(
        company=remittance.company, user=user, action='paid_remittance',
        details={'remittance_id': str(remittance.id), 'journal_entry': journal_entry.entry_number,
                 'amount': str(outstanding)},
    )
    logger.info(f'Paid {remittance.remittance_type} remittance {remittance.id}: {outstanding} ({journal_entry.entry_number}).')
    return remittance


def refresh_overdue_statuses(company: Company, today=None):
    today = today or timezone.localdate()
    updated = StatutoryRemittance.objects.filter(
        company=company, status=StatutoryRemittance.PENDING, due_date__lt=today,
    ).update(status=StatutoryRemittance.OVERDUE)
    if updated:
        logger.info(f'Marked {updated} remittances overdue for company {company.name}.')
    return updated

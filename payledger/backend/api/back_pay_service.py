'''Retroactive salary increases: how much is owed, and what it does to tax, as a preview.'''
import logging
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal, InvalidOperation

from .exceptions import ValidationError
from .payroll_service import period_salary
from .tax_calculator import JAMAICA_RATES, MONTHLY, BIWEEKLY, WEEKLY, calculate_payroll, money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackPayResult:
    employee_id: str
    frequency: str
    effective_date: date
    through_date: date
    periods_count: int
    old_period_salary: Decimal
    new_period_salary: Decimal
    period_gross_difference: Decimal
    period_paye_difference: Decimal
    period_nis_difference: Decimal
    period_nht_difference: Decimal
    period_education_tax_difference: Decimal
    period_net_difference: Decimal
    period_employer_difference: Decimal
    gross_back_pay: Decimal
    paye: Decimal
    nis: Decimal
    nht: Decimal
    education_tax: Decimal
    net_back_pay: Decimal
    employer_contributions: Decimal
    total_cost: Decimal

    def as_dict(self):
        return asdict(self)


def months_between(start: date, end: date):
    return (end.year - start.year) * 12 + end.month - start.month


def count_periods(effective_date: date, through_date: date, frequency):
    if frequency == MONTHLY:
        return months_between(effective_date, through_date)
    days = (through_date - effective_date).days
    if frequency == BIWEEKLY:
        return days // 14
    if frequency == WEEKLY:
        return days // 7
    raise ValidationError(f'Unsupported pay frequency: {frequency!r}')


def _salary(name, value):
    try:
        return money(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{name} must be a number, got {value!r}') from None


def calculate_back_pay(employee_id, old_salary, new_salary, effective_date, through_date, frequency=MONTHLY, rates=JAMAICA_RATES):
    '''
    Salaries are monthly figures. Each side is converted to one pay period of ``frequency``
    and run through the calculator without YTD history; the per-period differences are
    multiplied by the number of elapsed periods.
    '''
    old_salary = _salary('old_salary', old_salary)
    new_salary = _salary('new_salary', new_salary)
    if not effective_date or not through_date:
        raise ValidationError('effective_date and through_date are required.')
    if new_salary <= old_salary:
        raise ValidationError('New salary must be greater than the old salary for back pay.')
    if through_date < effective_date:
        raise ValidationError('through_date cannot be before effective_date.')
    rates.periods(frequency)

    periods_count = count_periods(effective_date, through_date, frequency)
    if periods_count <= 0:
        raise ValidationError(
            'No complete pay periods between the effective date and the through date.',
            details={'effective_date': str(effective_date), 'through_date': str(through_date)},
        )

    old_period_salary = period_salary(old_salary, frequency, rates)
    new_period_salary = period_salary(new_salary, frequency, rates)
    before = calculate_payroll(old_period_salary, frequency=frequency, rates=rates)
    after = calculate_payroll(new_period_salary, frequency=frequency, rates=rates)

    gross_diff = after.gross_pay - before.gross_pay
    paye_diff = after.employee.tax - before.employee.tax
    nis_diff = after.employee.nis - before.employee.nis
    nht_diff = after.employee.nht - before.employee.nht
    education_tax_diff = after.employee.education_tax - before.employee.education_tax
    net_diff = after.net_pay - before.net_pay
    employer_diff = after.employer.total - before.employer.total

    gross_back_pay = money(gross_diff * periods_count)
    employer_contributions = money(employer_diff * periods_count)
    result = BackPayResult(
        employee_id=str(employee_id),
        frequency=frequency,
        effective_date=effective_date,
        through_date=through_date,
        periods_count=periods_count,
        old_period_salary=old_period_salary,
        new_period_salary=new_period_salary,
        period_gross_difference=gross_diff,
        period_paye_difference=paye_diff,
        period_nis_difference=nis_diff,
        period_nht_difference=nht_diff,
        period_education_tax_difference=education_tax_diff,
        period_net_difference=net_diff,
        period_employer_difference=employer_diff,
        gross_back_pay=gross_back_pay,
        paye=money(paye_diff * periods_count),
        nis=money(nis_diff * periods_count),
        nht=money(nht_diff * periods_count),
        education_tax=money(education_tax_diff * periods_count),
        net_back_pay=money(net_diff * periods_count),
        employer_contributions=employer_contributions,
        total_cost=money(gross_back_pay + employer_contributions),
    )
    logger.info(
        f'Back pay preview for employee {employee_id}: {periods_count} {frequency.lower()} periods, '
        f'gross {gross_back_pay}, net {result.net_back_pay}.'
    )
    return result

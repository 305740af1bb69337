'''
Jamaica statutory payroll deductions, gross to net, for a single employee and pay period.

Rates are for the 2026/27 fiscal year (April to March):

    PAYE            25% above the tax-free threshold up to 6,000,000 a year, 30% above that
    NIS             3% employee, 3% employer, on wages up to the insurable ceiling
    NHT             2% employee, 3% employer, on gross
    Education Tax   2.25% employee, 3.5% employer, on statutory income
    HEART/NTA       3% employer only, on gross

Statutory income is gross less employee NIS and approved pension contributions; it is
the base for both PAYE and Education Tax. Every amount is rounded half-up to the cent
as it is derived.

Nothing here touches the database.
'''
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Mapping, Optional, Tuple

from .exceptions import ValidationError

WEEKLY = 'WEEKLY'
BIWEEKLY = 'BIWEEKLY'
MONTHLY = 'MONTHLY'

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PAYEBand:
    '''Marginal rate up to an annual taxable-income limit; ``None`` means no upper limit.'''
    annual_limit: Optional[Decimal]
    rate: Decimal


@dataclass(frozen=True)
class StatutoryRates:
    tax_year: str
    periods_per_year: Mapping[str, int]
    paye_annual_threshold: Decimal
    paye_period_thresholds: Mapping[str, Decimal]
    paye_bands: Tuple[PAYEBand, ...]
    nis_employee_rate: Decimal
    nis_employer_rate: Decimal
    nis_annual_wage_ceiling: Decimal
    nis_max_annual_contribution: Decimal
    nht_employee_rate: Decimal
    nht_employer_rate: Decimal
    education_tax_employee_rate: Decimal
    education_tax_employer_rate: Decimal
    heart_employer_rate: Decimal

    def periods(self, frequency):
        try:
            return self.periods_per_year[frequency]
        except KeyError:
            raise ValidationError(
                f'Unsupported pay frequency: {frequency!r}',
                details={'allowed': sorted(self.periods_per_year)},
            ) from None

    def period_threshold(self, frequency):
        periods = self.periods(frequency)
        return self.paye_period_thresholds.get(frequency) or money(self.paye_annual_threshold / periods)

    def period_nis_ceiling(self, frequency):
        return money(self.nis_annual_wage_ceiling / self.periods(frequency))


JAMAICA_RATES = StatutoryRates(
    tax_year='2026/27',
    periods_per_year={WEEKLY: 52, BIWEEKLY: 26, MONTHLY: 12},
    paye_annual_threshold=Decimal('1902360.00'),
    paye_period_thresholds={
        WEEKLY: Decimal('36584.00'),
        BIWEEKLY: Decimal('73168.00'),
        MONTHLY: Decimal('158530.00'),
    },
    paye_bands=(
        PAYEBand(Decimal('6000000.00'), Decimal('0.25')),
        PAYEBand(None, Decimal('0.30')),
    ),
    nis_employee_rate=Decimal('0.03'),
    nis_employer_rate=Decimal('0.03'),
    nis_annual_wage_ceiling=Decimal('5000000.00'),
    nis_max_annual_contribution=Decimal('150000.00'),
    nht_employee_rate=Decimal('0.02'),
    nht_employer_rate=Decimal('0.03'),
    education_tax_employee_rate=Decimal('0.0225'),
    education_tax_employer_rate=Decimal('0.035'),
    heart_employer_rate=Decimal('0.03'),
)


@dataclass(frozen=True)
class EmployeeDeductions:
    tax: Decimal
    nis: Decimal
    nht: Decimal
    education_tax: Decimal
    other: Decimal
    total: Decimal


@dataclass(frozen=True)
class EmployerContributions:
    nis: Decimal
    nht: Decimal
    education_tax: Decimal
    skills_levy: Decimal
    total: Decimal


@dataclass(frozen=True)
class PayrollCalculation:
    frequency: str
    gross_pay: Decimal
    pension_contribution: Decimal
    statutory_income: Decimal
    employee: EmployeeDeductions
    employer: EmployerContributions
    net_pay: Decimal

    def as_dict(self):
        return asdict(self)


def _amount(name, value, allow_negative=True):
    if value is None:
        return ZERO
    try:
        amount = money(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{name} must be a number, got {value!r}') from None
    if not allow_negative and amount < ZERO:
        raise ValidationError(f'{name} cannot be negative.')
    return amount


def progressive_tax(taxable, threshold, bands, periods_elapsed, periods_per_year):
    '''
    Tax on ``taxable`` above ``threshold``. Band limits are annual figures prorated to
    ``periods_elapsed`` out of ``periods_per_year``.
    '''
    if taxable <= threshold:
        return ZERO
    tax = ZERO
    lower = threshold
    for band in bands:
        upper = None
        if band.annual_limit is not None:
            upper = money(band.annual_limit * periods_elapsed / periods_per_year)
        top = taxable if upper is None else min(taxable, upper)
        if top > lower:
            tax += money((top - lower) * band.rate)
        if upper is None or taxable <= upper:
            break
        lower = max(lower, upper)
    return money(tax)


def _zero_calculation(frequency, gross_pay):
    return PayrollCalculation(
        frequency=frequency,
        gross_pay=gross_pay,
        pension_contribution=ZERO,
        statutory_income=ZERO,
        employee=EmployeeDeductions(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO),
        employer=EmployerContributions(ZERO, ZERO, ZERO, ZERO, ZERO),
        net_pay=gross_pay,
    )


def calculate_payroll(
    basic_salary,
    overtime=ZERO,
    bonus=ZERO,
    commission=ZERO,
    allowances=ZERO,
    pension_contribution=ZERO,
    other_deductions=ZERO,
    frequency=MONTHLY,
    ytd_gross=None,
    ytd_nis=None,
    ytd_taxable=None,
    ytd_paye=None,
    period_number=None,
    rates=JAMAICA_RATES,
):
    '''
    Compute one pay period's deductions.

    Without YTD context the period is taxed on its own (per-period threshold and bands).
    With ``period_number`` (1-based position of this pay period in the fiscal year) PAYE is
    cumulative: the threshold and bands are accumulated over the elapsed periods, tax is
    computed on ``ytd_taxable`` plus this period, and ``ytd_paye`` already withheld is
    subtracted. ``ytd_taxable`` defaults to ``ytd_gross - ytd_nis``.

    ``ytd_nis`` caps this period's NIS at the remaining annual contribution headroom.
    '''
    periods = rates.periods(frequency)

    gross_pay = money(
        _amount('basic_salary', basic_salary)
        + _amount('overtime', overtime)
        + _amount('bonus', bonus)
        + _amount('commission', commission)
        + _amount('allowances', allowances)
    )
    pension = _amount('pension_contribution', pension_contribution, allow_negative=False)
    other = _amount('other_deductions', other_deductions, allow_negative=False)
    ytd_gross = _amount('ytd_gross', ytd_gross, allow_negative=False)
    ytd_nis_amount = _amount('ytd_nis', ytd_nis, allow_negative=False)
    ytd_paye = _amount('ytd_paye', ytd_paye, allow_negative=False)
    if period_number is not None and int(period_number) < 1:
        raise ValidationError(f'period_number must be 1 or greater, got {period_number!r}')

    if gross_pay <= ZERO:
        return _zero_calculation(frequency, gross_pay)

    insurable = min(gross_pay, rates.period_nis_ceiling(frequency))
    nis = money(insurable * rates.nis_employee_rate)
    employer_nis = money(insurable * rates.nis_employer_rate)
    if ytd_nis is not None:
        remaining = max(rates.nis_max_annual_contribution - ytd_nis_amount, ZERO)
        nis = min(nis, remaining)
        employer_remaining = remaining
        if rates.nis_employee_rate:
            employer_remaining = money(remaining * rates.nis_employer_rate / rates.nis_employee_rate)
        employer_nis = min(employer_nis, employer_remaining)

    statutory_income = max(money(gross_pay - nis - pension), ZERO)

    if period_number is not None:
        elapsed = int(period_number)
        if ytd_taxable is None:
            prior_taxable = max(ytd_gross - ytd_nis_amount, ZERO)
        else:
            prior_taxable = _amount('ytd_taxable', ytd_taxable, allow_negative=False)
        cumulative_tax = progressive_tax(
            prior_taxable + statutory_income,
            money(rates.period_threshold(frequency) * elapsed),
            rates.paye_bands,
            elapsed,
            periods,
        )
        tax = max(cumulative_tax - ytd_paye, ZERO)
    else:
        tax = progressive_tax(statutory_income, rates.period_threshold(frequency), rates.paye_bands, 1, periods)

    nht = money(gross_pay * rates.nht_employee_rate)
    employer_nht = money(gross_pay * rates.nht_employer_rate)

    education_tax = money(statutory_income * rates.education_tax_employee_rate)
    employer_education_tax = money(statutory_income * rates.education_tax_employer_rate)

    heart = money(gross_pay * rates.heart_employer_rate)

    employee_total = money(nis + nht + education_tax + tax + other)
    employer_total = money(employer_nis + employer_nht + employer_education_tax + heart)

    return PayrollCalculation(
        frequency=frequency,
        gross_pay=gross_pay,
        pension_contribution=pension,
        statutory_income=statutory_income,
        employee=EmployeeDeductions(
            tax=tax, nis=nis, nht=nht, education_tax=education_tax, other=other, total=employee_total,
        ),
        employer=EmployerContributions(
            nis=employer_nis, nht=employer_nht, education_tax=employer_education_tax,
            skills_levy=heart, total=employer_total,
        ),
        net_pay=money(gross_pay - employee_total),
    )

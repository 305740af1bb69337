'''
Debit/credit line sets for each business event that reaches the ledger.

Every template is a pure function: it turns event fields into a PostingDraft and leaves
zero-line filtering, account resolution and the balance check to posting_service. Zero
amount lines are emitted as-is so the pairing stays visible in one place.
'''
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from . import chart_of_accounts as coa
from .exceptions import ValidationError
from .models import JournalEntry, StatutoryRemittance
from .tax_calculator import ZERO, money

CASH = 'CASH'
CARD = 'CARD'
BANK_TRANSFER = 'BANK_TRANSFER'
CHEQUE = 'CHEQUE'
MOBILE = 'MOBILE'
TENDER_METHODS = (CASH, CARD, BANK_TRANSFER, CHEQUE, MOBILE)

GCT_STANDARD_RATE = Decimal('0.15')
# Input tax on these categories is only half recoverable.
RESTRICTED_INPUT_TAX_CATEGORIES = {
    coa.ExpenseCategory.ENTERTAINMENT: Decimal('0.50'),
    coa.ExpenseCategory.MEALS: Decimal('0.50'),
    coa.ExpenseCategory.VEHICLE: Decimal('0.50'),
}

REMITTANCE_ACCOUNTS = {
    StatutoryRemittance.PAYE: (coa.PAYE_PAYABLE, None),
    StatutoryRemittance.NIS: (coa.NIS_PAYABLE, coa.EMPLOYER_NIS_PAYABLE),
    StatutoryRemittance.NHT: (coa.NHT_PAYABLE, coa.EMPLOYER_NHT_PAYABLE),
    StatutoryRemittance.EDUCATION_TAX: (coa.EDUCATION_TAX_PAYABLE, coa.EMPLOYER_EDUCATION_TAX_PAYABLE),
    StatutoryRemittance.HEART_NTA: (None, coa.HEART_NTA_PAYABLE),
}


@dataclass(frozen=True)
class JournalLineDraft:
    account_number: str
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    description: str = ''

    @property
    def is_zero(self):
        return not self.debit_amount and not self.credit_amount

    def mirrored(self):
        return JournalLineDraft(self.account_number, self.credit_amount, self.debit_amount, self.description)


@dataclass(frozen=True)
class PostingDraft:
    date: object
    description: str
    source_module: str
    source_document_id: Optional[str]
    lines: Tuple[JournalLineDraft, ...] = field(default_factory=tuple)
    reference: Optional[str] = None
    source_document_type: Optional[str] = None


@dataclass(frozen=True)
class PayrollTotals:
    gross: Decimal
    paye: Decimal
    nis: Decimal
    nht: Decimal
    education_tax: Decimal
    other_deductions: Decimal
    net: Decimal
    employer_nis: Decimal
    employer_nht: Decimal
    employer_education_tax: Decimal
    heart: Decimal

    @property
    def employer_total(self):
        return money(self.employer_nis + self.employer_nht + self.employer_education_tax + self.heart)


@dataclass(frozen=True)
class ReturnedItem:
    unit_cost: Decimal
    quantity_returned: Decimal
    quantity_restocked: Decimal = ZERO


def debit(account_number, amount, description=''):
    return JournalLineDraft(account_number, debit_amount=money(amount), description=description)


def credit(account_number, amount, description=''):
    return JournalLineDraft(account_number, credit_amount=money(amount), description=description)


def _non_negative(**amounts):
    result = []
    for name, value in amounts.items():
        amount = money(value if value is not None else ZERO)
        if amount < ZERO:
            raise ValidationError(f'{name} cannot be negative.', details={name: str(amount)})
        result.append(amount)
    return result


def cash_or_bank_account(method):
    if method not in TENDER_METHODS:
        raise ValidationError(f'Unknown tender method: {method!r}', details={'allowed': list(TENDER_METHODS)})
    return coa.CASH if method == CASH else coa.BANK_ACCOUNT


def mirror_lines(lines: Iterable[JournalLineDraft]):
    return tuple(line.mirrored() for line in lines)


def claimable_input_tax(category, tax_amount):
    '''Split GCT paid on a purchase into (claimable, unclaimable) portions.'''
    (tax_amount,) = _non_negative(tax_amount=tax_amount)
    ratio = RESTRICTED_INPUT_TAX_CATEGORIES.get(coa.ExpenseCategory(category), Decimal('1'))
    claimable = money(tax_amount * ratio)
    return claimable, tax_amount - claimable


def _invoice_lines(invoice_number, total, subtotal, tax, discount):
    return (
        debit(coa.ACCOUNTS_RECEIVABLE, total, f'A/R for Invoice {invoice_number}'),
        credit(coa.SALES_REVENUE, subtotal, f'Sales revenue for Invoice {invoice_number}'),
        credit(coa.GCT_PAYABLE, tax, f'GCT on Invoice {invoice_number}'),
        debit(coa.DISCOUNT_GIVEN, discount, f'Discount on Invoice {invoice_number}'),
    )


def invoice_created(invoice_id, invoice_number, date, total, subtotal, tax=ZERO, discount=ZERO, customer_name=None):
    '''
    Revenue is credited at the gross subtotal and the discount debited to Discounts Given,
    so net revenue is subtotal less discount.
    '''
    total, subtotal, tax, discount = _non_negative(total=total, subtotal=subtotal, tax=tax, discount=discount)
    description = f'Invoice {invoice_number}' + (f' to {customer_name}' if customer_name else '')
    return PostingDraft(
        date=date,
        description=description,
        source_module=JournalEntry.INVOICE,
        source_document_id=str(invoice_id),
        source_document_type='invoice',
        reference=invoice_number,
        lines=_invoice_lines(invoice_number, total, subtotal, tax, discount),
    )


def invoice_cancelled(invoice_id, invoice_number, date, total, subtotal, tax=ZERO, discount=ZERO, customer_name=None):
    total, subtotal, tax, discount = _non_negative(total=total, subtotal=subtotal, tax=tax, discount=discount)
    return PostingDraft(
        date=date,
        description=f'Cancellation of Invoice {invoice_number}' + (f' to {customer_name}' if customer_name else ''),
        source_module=JournalEntry.INVOICE,
        source_document_id=str(invoice_id),
        source_document_type='invoice_cancellation',
        reference=invoice_number,
        lines=mirror_lines(_invoice_lines(invoice_number, total, subtotal, tax, discount)),
    )


def payment_received(payment_id, date, amount, method, invoice_number=None, reference=None):
    (amount,) = _non_negative(amount=amount)
    receiving_account = cash_or_bank_account(method)
    label = f'Payment for Invoice {invoice_number}' if invoice_number else 'Customer payment'
    return PostingDraft(
        date=date,
        description=label,
        source_module=JournalEntry.PAYMENT,
        source_document_id=str(payment_id),
        source_document_type='payment',
        reference=reference or invoice_number,
        lines=(
            debit(receiving_account, amount, f'{label} ({method})'),
            credit(coa.ACCOUNTS_RECEIVABLE, amount, label),
        ),
    )


def expense_recorded(
    expense_id, date, amount, category, tax_amount=ZERO, tax_claimable=True, method=BANK_TRANSFER,
    vendor_name=None, description=None, apply_input_tax_restrictions=False,
):
    '''
    ``amount`` is tax-inclusive. Claimable GCT goes to the input tax credit account and
    the rest of the amount to the category's expense account.
    '''
    amount, tax_amount = _non_negative(amount=amount, tax_amount=tax_amount)
    if tax_amount > amount:
        raise ValidationError('Tax amount cannot exceed the expense amount.')
    expense_account = coa.expense_account_for(category)
    paying_account = cash_or_bank_account(method)

    claimable = ZERO
    if tax_claimable and tax_amount > ZERO:
        if apply_input_tax_restrictions:
            claimable, _ = claimable_input_tax(category, tax_amount)
        else:
            claimable = tax_amount

    label = description or (f'Expense from {vendor_name}' if vendor_name else f'{coa.ExpenseCategory(category).label} expense')
    return PostingDraft(
        date=date,
        description=label,
        source_module=JournalEntry.EXPENSE,
        source_document_id=str(expense_id),
        source_document_type='expense',
        lines=(
            debit(expense_account, amount - claimable, label),
            debit(coa.GCT_INPUT_TAX, claimable, f'GCT input credit: {label}'),
            credit(paying_account, amount, f'Payment: {label}'),
        ),
    )


def payroll_run_posted(run_id, date, period_start, period_end, totals: PayrollTotals):
    period = f'{period_start} to {period_end}'
    return PostingDraft(
        date=date,
        description=f'Payroll for period {period}',
        source_module=JournalEntry.PAYROLL,
        source_document_id=str(run_id),
        source_document_type='payroll_run',
        lines=(
            debit(coa.SALARY_EXPENSE, totals.gross, 'Gross salaries and wages'),
            debit(coa.EMPLOYER_PAYROLL_TAX_EXPENSE, totals.employer_total, 'Employer statutory contributions'),
            credit(coa.PAYE_PAYABLE, totals.paye, 'PAYE withheld'),
            credit(coa.NIS_PAYABLE, totals.nis, 'Employee NIS withheld'),
            credit(coa.NHT_PAYABLE, totals.nht, 'Employee NHT withheld'),
            credit(coa.EDUCATION_TAX_PAYABLE, totals.education_tax, 'Employee Education Tax withheld'),
            credit(coa.EMPLOYER_NIS_PAYABLE, totals.employer_nis, 'Employer NIS'),
            credit(coa.EMPLOYER_NHT_PAYABLE, totals.employer_nht, 'Employer NHT'),
            credit(coa.EMPLOYER_EDUCATION_TAX_PAYABLE, totals.employer_education_tax, 'Employer Education Tax'),
            credit(coa.HEART_NTA_PAYABLE, totals.heart, 'HEART/NTA levy'),
            credit(coa.PAYROLL_DEDUCTIONS_PAYABLE, totals.other_deductions, 'Loan repayments and other deductions'),
            credit(coa.SALARIES_PAYABLE, totals.net, 'Net wages payable'),
        ),
    )


def payroll_run_paid(run_id, date, period_start, period_end, net_total, method=BANK_TRANSFER):
    (net_total,) = _non_negative(net_total=net_total)
    return PostingDraft(
        date=date,
        description=f'Net pay for period {period_start} to {period_end}',
        source_module=JournalEntry.PAYROLL,
        source_document_id=str(run_id),
        source_document_type='payroll_payment',
        lines=(
            debit(coa.SALARIES_PAYABLE, net_total, 'Net wages paid'),
            credit(cash_or_bank_account(method), net_total, 'Net wages paid'),
        ),
    )


def _split_tenders(total, tenders):
    cash_tendered = ZERO
    other_tendered = ZERO
    for method, amount in tenders:
        cash_or_bank_account(method)
        (amount,) = _non_negative(tender=amount)
        if method == CASH:
            cash_tendered += amount
        else:
            other_tendered += amount
    tendered = cash_tendered + other_tendered
    if total > ZERO and tendered <= ZERO:
        raise ValidationError('A completed order needs at least one tender.')
    if tendered <= ZERO:
        return ZERO, ZERO
    bank_share = min(other_tendered, total)
    return total - bank_share, bank_share


def pos_order_completed(order_id, order_number, date, subtotal, tax, tenders: Sequence, discount=ZERO, cost_of_goods=ZERO):
    '''
    ``tenders`` is a sequence of (method, amount). Cash tendered above the order total is
    change and comes back out of the drawer, so non-cash tenders are booked in full up to the
    order total and cash covers the remainder.
    '''
    subtotal, tax, discount, cost_of_goods = _non_negative(
        subtotal=subtotal, tax=tax, discount=discount, cost_of_goods=cost_of_goods
    )
    total = money(subtotal - discount + tax)
    cash_share, bank_share = _split_tenders(total, tenders)
    return PostingDraft(
        date=date,
        description=f'POS order {order_number}',
        source_module=JournalEntry.POS,
        source_document_id=str(order_id),
        source_document_type='pos_order',
        reference=order_number,
        lines=(
            debit(coa.CASH, cash_share, f'Cash received: order {order_number}'),
            debit(coa.BANK_ACCOUNT, bank_share, f'Card/transfer received: order {order_number}'),
            debit(coa.DISCOUNT_GIVEN, discount, f'Discount: order {order_number}'),
            debit(coa.COST_OF_GOODS_SOLD, cost_of_goods, f'Cost of goods: order {order_number}'),
            credit(coa.SALES_REVENUE, subtotal, f'Sales: order {order_number}'),
            credit(coa.GCT_PAYABLE, tax, f'GCT: order {order_number}'),
            credit(coa.INVENTORY, cost_of_goods, f'Inventory relieved: order {order_number}'),
        ),
    )


def pos_return_completed(
    return_id, return_number, date, subtotal, tax, refund_method, items: Iterable[ReturnedItem] = (), discount=ZERO,
):
    '''Only quantities actually put back on the shelf reverse cost of goods into inventory.'''
    subtotal, tax, discount = _non_negative(subtotal=subtotal, tax=tax, discount=discount)
    restocked_cost = ZERO
    for item in items:
        unit_cost, returned, restocked = _non_negative(
            unit_cost=item.unit_cost, quantity_returned=item.quantity_returned,
            quantity_restocked=item.quantity_restocked,
        )
        if restocked > returned:
            raise ValidationError('Restocked quantity cannot exceed returned quantity.')
        restocked_cost += money(unit_cost * restocked)
    refund = money(subtotal - discount + tax)
    return PostingDraft(
        date=date,
        description=f'POS return {return_number}',
        source_module=JournalEntry.POS,
        source_document_id=str(return_id),
        source_document_type='pos_return',
        reference=return_number,
        lines=(
            debit(coa.SALES_REVENUE, subtotal, f'Sales returned: {return_number}'),
            debit(coa.GCT_PAYABLE, tax, f'GCT reversed: {return_number}'),
            debit(coa.INVENTORY, restocked_cost, f'Restocked: {return_number}'),
            credit(coa.DISCOUNT_GIVEN, discount, f'Discount reversed: {return_number}'),
            credit(cash_or_bank_account(refund_method), refund, f'Refund: {return_number}'),
            credit(coa.COST_OF_GOODS_SOLD, restocked_cost, f'Cost of goods reversed: {return_number}'),
        ),
    )


def remittance_paid(remittance_id, date, remittance_type, period_label, employee_amount, employer_amount,
                    method=BANK_TRANSFER, reference=None):
    try:
        employee_account, employer_account = REMITTANCE_ACCOUNTS[remittance_type]
    except KeyError:
        raise ValidationError(f'Unknown remittance type: {remittance_type!r}') from None
    employee_amount, employer_amount = _non_negative(employee_amount=employee_amount, employer_amount=employer_amount)
    if employee_account is None:
        employer_amount += employee_amount
        employee_amount = ZERO
    if employer_account is None:
        employee_amount += employer_amount
        employer_amount = ZERO
    label = f'{remittance_type} remittance for {period_label}'
    lines = []
    if employee_account:
        lines.append(debit(employee_account, employee_amount, f'{label} (employee)'))
    if employer_account:
        lines.append(debit(employer_account, employer_amount, f'{label} (employer)'))
    lines.append(credit(cash_or_bank_account(method), employee_amount + employer_amount, label))
    return PostingDraft(
        date=date,
        description=label,
        source_module=JournalEntry.REMITTANCE,
        source_document_id=str(remittance_id),
        source_document_type='statutory_remittance',
        reference=reference,
        lines=tuple(lines),
    )

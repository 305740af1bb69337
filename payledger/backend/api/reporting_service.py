import logging
from .models import GLAccount, Company
from decimal import Decimal
from datetime import date
from django.db.models import Q, Sum

logger = logging.getLogger(__name__)


def get_trial_balance_data(company: Company, as_of_date: date = None):
    '''
    Generates data for a Trial Balance for a given company.

    Args:
        company (Company): The company whose ledger is summarised.
        as_of_date (date): Only entries dated on or before this day are included. All entries when omitted.

    Returns:
        dict: Per-account debit/credit totals and the balance signed by each account's normal
        balance, plus the column totals. ``signed_balance_total`` (debit-normal balances less
        credit-normal balances) is zero for a balanced ledger.
    '''
    logger.info(f"Generating trial balance for company '{company.name}' as of {as_of_date or 'today'}.")

    line_filter = Q(journal_lines__journal_entry__date__lte=as_of_date) if as_of_date else Q()
    accounts = (
        GLAccount.objects.filter(company=company)
        .annotate(
            debits=Sum('journal_lines__debit_amount', filter=line_filter),
            credits=Sum('journal_lines__credit_amount', filter=line_filter),
        )
        .order_by('account_number')
    )

    total_debits = Decimal('0.00')
    total_credits = Decimal('0.00')
    signed_balance_total = Decimal('0.00')
    rows = []
    for account in accounts:
        debits = account.debits or Decimal('0.00')
        credits = account.credits or Decimal('0.00')
        if not debits and not credits:
            continue
        balance = account.signed(debits, credits)
        total_debits += debits
        total_credits += credits
        if account.normal_balance == GLAccount.DEBIT:
            signed_balance_total += balance
        else:
            signed_balance_total -= balance
        rows.append({
            'account_number': account.account_number,
            'account_name': account.name,
            'type': account.type,
            'normal_balance': account.normal_balance,
            'debits': debits,
            'credits': credits,
            'balance': balance,
        })

    return {
        'report_type': 'Trial Balance',
        'company_name': company.name,
        'as_of_date': as_of_date.isoformat() if as_of_date else None,
        'accounts': rows,
        'total_debits': total_debits,
        'total_credits': total_credits,
        'signed_balance_total': signed_balance_total,
        'is_balanced': total_debits == total_credits,
    }

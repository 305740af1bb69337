from django.db import IntegrityError, transaction as db_transaction
import logging

from .chart_of_accounts import DEFAULT_CHART_OF_ACCOUNTS, get_default_account
from .exceptions import AccountResolutionError
from .models import GLAccount, Company

logger = logging.getLogger(__name__)


def _account_defaults(default_account, company: Company):
    return {
        'name': default_account.name,
        'type': default_account.type,
        'sub_type': default_account.sub_type,
        'normal_balance': default_account.normal_balance,
        'is_system_account': True,
        'is_control_account': default_account.is_control_account,
        'is_tax_account': default_account.is_tax_account,
        'is_bank_account': default_account.is_bank_account,
        'description': default_account.description or f'System account for {company.name}. Auto-created.',
    }


def get_or_create_system_account(company: Company, account_number: str):
    '''
    Find a system account by number, creating it from the default chart if it is missing.
    A concurrent creator winning the race shows up as an IntegrityError; the row it wrote is
    fetched instead.
    '''
    default_account = get_default_account(account_number)
    if default_account is None:
        raise AccountResolutionError(
            f'Account {account_number} is not a system account and cannot be auto-created.',
            details={'account_number': account_number},
        )
    try:
        return GLAccount.objects.get(company=company, account_number=account_number)
    except GLAccount.DoesNotExist:
        pass
    try:
        with db_transaction.atomic():
            account = GLAccount.objects.create(
                company=company, account_number=account_number, **_account_defaults(default_account, company)
            )
        logger.info(f'Created system account {account_number} "{account.name}" for company {company.name}.')
        return account
    except IntegrityError:
        logger.info(f'System account {account_number} for company {company.name} was created concurrently; re-fetching.')
        return GLAccount.objects.get(company=company, account_number=account_number)


def resolve_account(company: Company, account_number: str, cache=None):
    '''Resolve an account number to an active GLAccount of the company.'''
    if cache is not None and account_number in cache:
        return cache[account_number]
    try:
        account = GLAccount.objects.get(company=company, account_number=account_number)
    except GLAccount.DoesNotExist:
        account = get_or_create_system_account(company, account_number)
    if not account.is_active:
        raise AccountResolutionError(
            f'Account {account_number} "{account.name}" is inactive and cannot receive postings.',
            details={'account_number': account_number},
        )
    if cache is not None:
        cache[account_number] = account
    return account


def seed_default_accounts(company: Company):
    '''Materialize the whole default chart for a company. Returns the number of accounts created.'''
    existing = set(GLAccount.objects.filter(company=company).values_list('account_number', flat=True))
    created = 0
    for default_account in DEFAULT_CHART_OF_ACCOUNTS:
        if default_account.account_number in existing:
            continue
        get_or_create_system_account(company, default_account.account_number)
        created += 1
    logger.info(f'Seeded {created} default accounts for company {company.name}.')
    return created

'''
The single write path to the ledger.

post_journal_entry validates a set of draft lines, drops zero lines, checks the entry
balances, resolves account numbers (creating missing system accounts), takes the next
per-company entry number and writes the entry and its lines in one transaction.
'''
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import DatabaseError, transaction as db_transaction

from .account_utils import resolve_account
from .exceptions import ValidationError, OutOfBalanceError, StateConflictError, PersistenceError
from .models import JournalEntry, JournalLine, JournalSequence
from .posting_templates import JournalLineDraft, PostingDraft
from .tax_calculator import ZERO, money

logger = logging.getLogger(__name__)

SOURCE_MODULES = {choice for choice, _ in JournalEntry.SOURCE_MODULE_CHOICES}


def get_balance_tolerance():
    return Decimal(str(getattr(settings, 'PAYLEDGER_BALANCE_TOLERANCE', '0.01')))


def format_entry_number(number):
    prefix = getattr(settings, 'PAYLEDGER_ENTRY_PREFIX', 'JE')
    width = getattr(settings, 'PAYLEDGER_ENTRY_NUMBER_WIDTH', 5)
    return f'{prefix}-{number:0{width}d}'


def next_entry_number(company):
    '''Increment the company's sequence row under a row lock. Must run inside a transaction.'''
    sequence, _ = JournalSequence.objects.select_for_update().get_or_create(company=company)
    sequence.last_number += 1
    sequence.save(update_fields=['last_number'])
    return format_entry_number(sequence.last_number)


def _coerce_amount(value, field_name, index):
    try:
        amount = money(Decimal(str(value if value not in (None, '') else '0')))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'Line {index}: {field_name} must be a number, got {value!r}') from None
    if amount < ZERO:
        raise ValidationError(f'Line {index}: {field_name} cannot be negative.')
    return amount


def _coerce_line(raw, index):
    if isinstance(raw, JournalLineDraft):
        account_number, debit, credit, description = raw.account_number, raw.debit_amount, raw.credit_amount, raw.description
    elif isinstance(raw, Mapping):
        account_number = raw.get('account_number')
        debit, credit = raw.get('debit_amount'), raw.get('credit_amount')
        description = raw.get('description') or ''
    else:
        raise ValidationError(f'Line {index}: unsupported line type {type(raw).__name__}.')
    if not account_number:
        raise ValidationError(f'Line {index}: account_number is required.')
    debit = _coerce_amount(debit, 'debit_amount', index)
    credit = _coerce_amount(credit, 'credit_amount', index)
    if debit > ZERO and credit > ZERO:
        raise ValidationError(f'Line {index}: a line cannot be both a debit and a credit.')
    return JournalLineDraft(str(account_number), debit, credit, description)


def prepare_lines(lines):
    '''Validate and quantize draft lines, then drop the zero-amount ones.'''
    if lines is None:
        raise ValidationError('Journal entry lines are required.')
    drafts = [_coerce_line(raw, index) for index, raw in enumerate(lines, start=1)]
    non_zero = [draft for draft in drafts if not draft.is_zero]
    if len(non_zero) < 2:
        raise ValidationError(
            'A journal entry must have at least two non-zero lines.',
            details={'non_zero_lines': len(non_zero)},
        )
    return non_zero


def check_balance(drafts):
    total_debits = sum((draft.debit_amount for draft in drafts), ZERO)
    total_credits = sum((draft.credit_amount for draft in drafts), ZERO)
    if abs(total_debits - total_credits) > get_balance_tolerance():
        logger.error(f'Rejected unbalanced journal entry. Debits: {total_debits}, Credits: {total_credits}.')
        raise OutOfBalanceError(
            f'Debits ({total_debits}) do not equal credits ({total_credits}).',
            details={'total_debits': str(total_debits), 'total_credits': str(total_credits)},
        )
    return total_debits, total_credits


def post_journal_entry(
    company, user, date, description, source_module, source_document_id, lines,
    reference=None, source_document_type=None, reversal_of=None,
):
    if company is None:
        raise ValidationError('A company is required to post a journal entry.')
    if not date:
        raise ValidationError('A journal entry date is required.')
    if not description:
        raise ValidationError('A journal entry description is required.')
    if source_module not in SOURCE_MODULES:
        raise ValidationError(f'Unknown source module: {source_module!r}')

    drafts = prepare_lines(lines)
    total_debits, total_credits = check_balance(drafts)

    try:
        with db_transaction.atomic():
            accounts = {}
            resolved = [(draft, resolve_account(company, draft.account_number, cache=accounts)) for draft in drafts]
            entry = JournalEntry.objects.create(
                company=company,
                entry_number=next_entry_number(company),
                date=date,
                description=description,
                reference=reference,
                source_module=source_module,
                source_document_id=str(source_document_id) if source_document_id is not None else None,
                source_document_type=source_document_type,
                total_debits=total_debits,
                total_credits=total_credits,
                reversal_of=reversal_of,
                created_by=user,
            )
            for line_number, (draft, account) in enumerate(resolved, start=1):
                JournalLine.objects.create(
                    journal_entry=entry,
                    line_number=line_number,
                    account=account,
                    debit_amount=draft.debit_amount,
                    credit_amount=draft.credit_amount,
                    description=draft.description[:255] or None,
                )
    except DatabaseError as exc:
        logger.error(f'Failed to persist journal entry "{description}" for company {company.id}: {exc}')
        raise PersistenceError(f'Failed to persist journal entry: {exc}') from exc

    logger.info(
        f'Posted {entry.entry_number} ({source_module} {source_document_id}) for company {company.name}: '
        f'{len(drafts)} lines, {total_debits}'
    )
    return entry


def post_draft(company, user, draft: PostingDraft):
    return post_journal_entry(
        company, user,
        date=draft.date,
        description=draft.description,
        source_module=draft.source_module,
        source_document_id=draft.source_document_id,
        lines=draft.lines,
        reference=draft.reference,
        source_document_type=draft.source_document_type,
    )


@db_transaction.atomic
def reverse_journal_entry(entry: JournalEntry, user, date=None, reason=None):
    '''Post the exact mirror of a posted entry and flag the original as reversed.'''
    entry = JournalEntry.objects.select_for_update().get(pk=entry.pk)
    if entry.is_reversed:
        raise StateConflictError(f'Journal entry {entry.entry_number} has already been reversed.')
    if entry.reversal_of_id:
        raise StateConflictError(f'Journal entry {entry.entry_number} is itself a reversal and cannot be reversed.')

    lines = [
        JournalLineDraft(line.account.account_number, line.credit_amount, line.debit_amount,
                         f'Reversal: {line.description or line.account.name}')
        for line in entry.lines.select_related('account')
    ]
    reversal = post_journal_entry(
        entry.company, user,
        date=date or entry.date,
        description=f'Reversal of {entry.entry_number}' + (f': {reason}' if reason else ''),
        source_module=JournalEntry.REVERSAL,
        source_document_id=str(entry.id),
        lines=lines,
        reference=entry.entry_number,
        source_document_type='journal_entry',
        reversal_of=entry,
    )
    entry.is_reversed = True
    entry.save(update_fields=['is_reversed'])
    logger.info(f'Reversed {entry.entry_number} with {reversal.entry_number}.')
    return reversal

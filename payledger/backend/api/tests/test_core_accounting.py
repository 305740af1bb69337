from unittest import mock
from django.test import TestCase
from django.contrib.auth import get_user_model
from django.core.exceptions import ImproperlyConfigured
from decimal import Decimal
from datetime import date
from payledger.backend.api.models import Company, GLAccount, JournalEntry, JournalLine, JournalSequence
from payledger.backend.api import chart_of_accounts as coa
from payledger.backend.api.account_utils import get_or_create_system_account, resolve_account, seed_default_accounts
from payledger.backend.api.exceptions import (
    ValidationError, OutOfBalanceError, AccountResolutionError, StateConflictError,
)
from payledger.backend.api.posting_service import post_journal_entry, reverse_journal_entry
from payledger.backend.api.reporting_service import get_trial_balance_data

User = get_user_model()


def line(account_number, debit='0.00', credit='0.00', description=''):
    return {'account_number': account_number, 'debit_amount': debit, 'credit_amount': credit, 'description': description}


class ChartOfAccountsTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name='Test Chart Co')

    def test_default_chart_is_well_formed(self):
        numbers = [account.account_number for account in coa.DEFAULT_CHART_OF_ACCOUNTS]
        self.assertEqual(len(numbers), len(set(numbers)), 'Account numbers must be unique.')
        self.assertEqual(coa.get_default_account(coa.GCT_INPUT_TAX).normal_balance, coa.DEBIT)
        self.assertEqual(coa.get_default_account(coa.ACCUMULATED_DEPRECIATION).normal_balance, coa.CREDIT)
        self.assertEqual(coa.get_default_account(coa.DISCOUNT_GIVEN).normal_balance, coa.DEBIT)
        self.assertIsNone(coa.get_default_account('9999'))

    def test_every_expense_category_is_mapped(self):
        coa.validate_category_map()
        for category in coa.ExpenseCategory:
            self.assertTrue(coa.is_system_account_number(coa.expense_account_for(category)))
        self.assertEqual(coa.expense_account_for('ENTERTAINMENT'), coa.MEALS_EXPENSE)

        incomplete = dict(coa.EXPENSE_CATEGORY_ACCOUNTS)
        incomplete.pop(coa.ExpenseCategory.RENT)
        with self.assertRaises(ImproperlyConfigured):
            coa.validate_category_map(incomplete)

        with self.assertRaises(ValidationError):
            coa.expense_account_for('YACHTS')

    def test_lazy_system_account_creation(self):
        self.assertFalse(GLAccount.objects.filter(company=self.company).exists())
        account = get_or_create_system_account(self.company, coa.PAYE_PAYABLE)
        self.assertEqual(account.name, 'PAYE Payable')
        self.assertEqual(account.type, GLAccount.LIABILITY)
        self.assertEqual(account.normal_balance, GLAccount.CREDIT)
        self.assertTrue(account.is_system_account)
        self.assertTrue(account.is_tax_account)

        again = get_or_create_system_account(self.company, coa.PAYE_PAYABLE)
        self.assertEqual(again.pk, account.pk)
        self.assertEqual(GLAccount.objects.filter(company=self.company).count(), 1)

        with self.assertRaises(AccountResolutionError):
            get_or_create_system_account(self.company, '9999')

    def test_resolve_rejects_inactive_account(self):
        account = get_or_create_system_account(self.company, coa.CASH)
        account.is_active = False
        account.save()
        with self.assertRaises(AccountResolutionError):
            resolve_account(self.company, coa.CASH)

    def test_seed_default_accounts_is_idempotent(self):
        get_or_create_system_account(self.company, coa.CASH)
        created = seed_default_accounts(self.company)
        self.assertEqual(created, len(coa.DEFAULT_CHART_OF_ACCOUNTS) - 1)
        self.assertEqual(seed_default_accounts(self.company), 0)
        self.assertEqual(GLAccount.objects.filter(company=self.company).count(), len(coa.DEFAULT_CHART_OF_ACCOUNTS))

    def test_account_number_is_immutable(self):
        account = get_or_create_system_account(self.company, coa.CASH)
        account.name = 'Cash Drawer'
        account.save()
        account.account_number = '1001'
        with self.assertRaises(StateConflictError):
            account.save()

    def test_account_normal_balance_is_immutable(self):
        account = get_or_create_system_account(self.company, coa.SALES_REVENUE)
        account.normal_balance = GLAccount.DEBIT
        with self.assertRaises(StateConflictError):
            account.save()
        account.refresh_from_db()
        account.type = GLAccount.EXPENSE
        with self.assertRaises(StateConflictError):
            account.save()
        account.refresh_from_db()
        self.assertEqual(account.normal_balance, GLAccount.CREDIT)
        self.assertEqual(account.type, GLAccount.INCOME)

    def test_concurrently_created_system_account_is_refetched(self):
        existing = GLAccount.objects.create(
            company=self.company, account_number=coa.NHT_PAYABLE, name='NHT Payable',
            type=GLAccount.LIABILITY, normal_balance=GLAccount.CREDIT, is_system_account=True,
        )
        real_get = GLAccount.objects.get
        calls = []

        def get_missing_once(*args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise GLAccount.DoesNotExist
            return real_get(*args, **kwargs)

        with mock.patch.object(GLAccount.objects, 'get', side_effect=get_missing_once):
            account = get_or_create_system_account(self.company, coa.NHT_PAYABLE)

        self.assertEqual(len(calls), 2)
        self.assertEqual(account.pk, existing.pk)
        self.assertEqual(GLAccount.objects.filter(company=self.company, account_number=coa.NHT_PAYABLE).count(), 1)
        # The failed insert only rolled back its savepoint
        self.assertEqual(get_or_create_system_account(self.company, coa.CASH).account_number, coa.CASH)


class PostingEngineTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name='Test Core Co')
        self.user = User.objects.create_user(username='coretest', password='password')

    def post(self, lines, **kwargs):
        params = {
            'date': date(2026, 5, 10), 'description': 'Test entry',
            'source_module': JournalEntry.MANUAL, 'source_document_id': None,
        }
        params.update(kwargs)
        return post_journal_entry(self.company, self.user, lines=lines, **params)

    def test_balanced_entry_is_posted(self):
        entry = self.post([line(coa.BANK_ACCOUNT, debit='1000.00'), line(coa.SALES_REVENUE, credit='1000.00')])

        self.assertEqual(entry.entry_number, 'JE-00001')
        self.assertEqual(entry.status, JournalEntry.POSTED)
        self.assertEqual(entry.total_debits, Decimal('1000.00'))
        self.assertEqual(entry.total_credits, Decimal('1000.00'))
        self.assertEqual(entry.lines.count(), 2)
        self.assertEqual(list(entry.lines.values_list('line_number', flat=True)), [1, 2])

        bank = GLAccount.objects.get(company=self.company, account_number=coa.BANK_ACCOUNT)
        revenue = GLAccount.objects.get(company=self.company, account_number=coa.SALES_REVENUE)
        self.assertTrue(bank.is_system_account)
        self.assertEqual(bank.get_balance(), Decimal('1000.00'))
        self.assertEqual(revenue.get_balance(), Decimal('1000.00'))  # Credit-normal accounts grow with credits

    def test_entry_numbers_are_sequential_per_company(self):
        lines = [line(coa.CASH, debit='10.00'), line(coa.OWNERS_EQUITY, credit='10.00')]
        first = self.post(lines)
        second = self.post(lines)
        self.assertEqual((first.entry_number, second.entry_number), ('JE-00001', 'JE-00002'))

        other_company = Company.objects.create(name='Other Co')
        other = post_journal_entry(
            other_company, self.user, date(2026, 5, 10), 'Other', JournalEntry.MANUAL, None, lines,
        )
        self.assertEqual(other.entry_number, 'JE-00001')
        self.assertEqual(JournalSequence.objects.get(company=self.company).last_number, 2)

    def test_zero_lines_are_dropped(self):
        entry = self.post([
            line(coa.CASH, debit='50.00'), line(coa.GCT_PAYABLE), line(coa.SALES_REVENUE, credit='50.00'),
        ])
        self.assertEqual(entry.lines.count(), 2)
        self.assertFalse(GLAccount.objects.filter(company=self.company, account_number=coa.GCT_PAYABLE).exists())

    def test_single_non_zero_line_rejected(self):
        with self.assertRaises(ValidationError):
            self.post([line(coa.CASH, debit='50.00'), line(coa.SALES_REVENUE)])
        with self.assertRaises(ValidationError):
            self.post([])
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_invalid_lines_rejected(self):
        with self.assertRaises(ValidationError):
            self.post([line(coa.CASH, debit='-50.00'), line(coa.SALES_REVENUE, credit='-50.00')])
        with self.assertRaises(ValidationError):
            self.post([line(coa.CASH, debit='50.00', credit='50.00'), line(coa.SALES_REVENUE, credit='50.00')])
        with self.assertRaises(ValidationError):
            self.post([line('', debit='50.00'), line(coa.SALES_REVENUE, credit='50.00')])
        with self.assertRaises(ValidationError):
            self.post([line(coa.CASH, debit='50.00'), line(coa.SALES_REVENUE, credit='50.00')], source_module='BOGUS')

    def test_out_of_balance_rejected_without_side_effects(self):
        with self.assertRaises(OutOfBalanceError) as ctx:
            self.post([line(coa.CASH, debit='100.00'), line(coa.SALES_REVENUE, credit='90.00')])
        self.assertEqual(ctx.exception.details['total_debits'], '100.00')
        self.assertEqual(JournalEntry.objects.count(), 0)
        self.assertEqual(GLAccount.objects.filter(company=self.company).count(), 0)

    def test_difference_within_tolerance_is_accepted(self):
        entry = self.post([line(coa.CASH, debit='100.01'), line(coa.SALES_REVENUE, credit='100.00')])
        self.assertEqual(entry.total_debits, Decimal('100.01'))

    def test_unknown_account_rolls_back(self):
        with self.assertRaises(AccountResolutionError):
            self.post([line(coa.CASH, debit='10.00'), line('9999', credit='10.00')])
        self.assertEqual(JournalEntry.objects.count(), 0)
        self.assertFalse(JournalSequence.objects.filter(company=self.company, last_number__gt=0).exists())

    def test_custom_account_can_receive_postings(self):
        custom = GLAccount.objects.create(
            company=self.company, account_number='6500', name='Staff Welfare',
            type=GLAccount.EXPENSE, normal_balance=GLAccount.DEBIT,
        )
        self.post([line('6500', debit='75.00'), line(coa.CASH, credit='75.00')])
        self.assertEqual(custom.get_balance(), Decimal('75.00'))
        self.assertEqual(GLAccount.objects.get(company=self.company, account_number=coa.CASH).get_balance(), Decimal('-75.00'))

    def test_posted_entries_are_immutable(self):
        entry = self.post([line(coa.CASH, debit='10.00'), line(coa.SALES_REVENUE, credit='10.00')])

        entry.description = 'Edited'
        with self.assertRaises(StateConflictError):
            entry.save()
        with self.assertRaises(StateConflictError):
            entry.delete()

        journal_line = entry.lines.first()
        journal_line.debit_amount = Decimal('20.00')
        with self.assertRaises(StateConflictError):
            journal_line.save()
        with self.assertRaises(StateConflictError):
            journal_line.delete()
        self.assertEqual(JournalLine.objects.get(pk=journal_line.pk).debit_amount, Decimal('10.00'))

    def test_reversal_mirrors_original(self):
        entry = self.post([line(coa.CASH, debit='250.00'), line(coa.SALES_REVENUE, credit='250.00')])
        reversal = reverse_journal_entry(entry, self.user, reason='Entered twice')

        self.assertEqual(reversal.source_module, JournalEntry.REVERSAL)
        self.assertEqual(reversal.reversal_of, entry)
        self.assertEqual(reversal.reference, entry.entry_number)
        self.assertIn('Entered twice', reversal.description)
        entry.refresh_from_db()
        self.assertTrue(entry.is_reversed)

        cash_line = reversal.lines.get(account__account_number=coa.CASH)
        self.assertEqual(cash_line.credit_amount, Decimal('250.00'))
        for number in (coa.CASH, coa.SALES_REVENUE):
            self.assertEqual(GLAccount.objects.get(company=self.company, account_number=number).get_balance(), Decimal('0.00'))

        with self.assertRaises(StateConflictError):
            reverse_journal_entry(entry, self.user)
        with self.assertRaises(StateConflictError):
            reverse_journal_entry(reversal, self.user)

    def test_balance_and_period_activity(self):
        self.post([line(coa.CASH, debit='200.00'), line(coa.SALES_REVENUE, credit='200.00')], date=date(2026, 1, 5))
        self.post([line(coa.OFFICE_SUPPLIES_EXPENSE, debit='30.00'), line(coa.CASH, credit='30.00')], date=date(2026, 1, 15))
        self.post([line(coa.CASH, debit='500.00'), line(coa.SALES_REVENUE, credit='500.00')], date=date(2026, 2, 5))

        cash = GLAccount.objects.get(company=self.company, account_number=coa.CASH)
        revenue = GLAccount.objects.get(company=self.company, account_number=coa.SALES_REVENUE)
        self.assertEqual(cash.get_balance(date_to=date(2026, 1, 31)), Decimal('170.00'))
        self.assertEqual(cash.get_balance(), Decimal('670.00'))
        self.assertEqual(revenue.get_period_activity(date(2026, 2, 1), date(2026, 2, 28)), Decimal('500.00'))
        with self.assertRaises(ValueError):
            revenue.get_period_activity(None, date(2026, 2, 28))

    def test_trial_balance_sums_to_zero(self):
        self.post([line(coa.BANK_ACCOUNT, debit='11500.00'), line(coa.OWNERS_EQUITY, credit='11500.00')], date=date(2026, 1, 2))
        self.post([
            line(coa.OFFICE_SUPPLIES_EXPENSE, debit='10000.00'), line(coa.GCT_INPUT_TAX, debit='1500.00'),
            line(coa.BANK_ACCOUNT, credit='11500.00'),
        ], date=date(2026, 3, 1))

        report = get_trial_balance_data(self.company)
        self.assertTrue(report['is_balanced'])
        self.assertEqual(report['total_debits'], Decimal('23000.00'))
        self.assertEqual(report['signed_balance_total'], Decimal('0.00'))
        by_number = {row['account_number']: row for row in report['accounts']}
        self.assertEqual(by_number[coa.BANK_ACCOUNT]['balance'], Decimal('0.00'))
        self.assertEqual(by_number[coa.GCT_INPUT_TAX]['balance'], Decimal('1500.00'))

        early = get_trial_balance_data(self.company, as_of_date=date(2026, 1, 31))
        self.assertEqual(early['total_debits'], Decimal('11500.00'))
        self.assertNotIn(coa.GCT_INPUT_TAX, [row['account_number'] for row in early['accounts']])

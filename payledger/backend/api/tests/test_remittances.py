from django.test import TestCase
from django.contrib.auth import get_user_model
from decimal import Decimal
from datetime import date
from payledger.backend.api.models import Company, GLAccount, JournalEntry, Employee, StatutoryRemittance
from payledger.backend.api import chart_of_accounts as coa
from payledger.backend.api.exceptions import ValidationError, StateConflictError
from payledger.backend.api.payroll_service import create_payroll_run, approve_payroll_run
from payledger.backend.api.remittance_service import (
    generate_remittances, pay_remittance, refresh_overdue_statuses, get_due_date,
)
from payledger.backend.api.tax_calculator import MONTHLY

User = get_user_model()

APRIL = dict(period_start=date(2026, 4, 1), period_end=date(2026, 4, 30), pay_date=date(2026, 4, 28))


class StatutoryRemittanceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='remituser', password='password123')
        self.company = Company.objects.create(name='Test Remittance Co')
        self.employee1 = Employee.objects.create(
            company=self.company, first_name='John', last_name='Brown', base_salary=Decimal('100000.00'),
        )
        self.employee2 = Employee.objects.create(
            company=self.company, first_name='Jane', last_name='Campbell', base_salary=Decimal('200000.00'),
        )

    def approved_run(self, employees, period=APRIL):
        payroll_run = create_payroll_run(
            self.company, self.user, frequency=MONTHLY,
            employee_inputs=[{'employee_id': str(employee.id)} for employee in employees], **period,
        )
        return approve_payroll_run(payroll_run, self.user)

    def remittance(self, remittance_type):
        return StatutoryRemittance.objects.get(
            company=self.company, remittance_type=remittance_type, period_month=date(2026, 4, 1),
        )

    def balance(self, account_number):
        return GLAccount.objects.get(company=self.company, account_number=account_number).get_balance()

    def test_generate_one_record_per_type(self):
        self.approved_run([self.employee1, self.employee2])
        remittances = generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 1))

        self.assertEqual(len(remittances), 5)
        nis = self.remittance(StatutoryRemittance.NIS)
        self.assertEqual(nis.employee_portion, Decimal('9000.00'))
        self.assertEqual(nis.employer_portion, Decimal('9000.00'))
        self.assertEqual(nis.amount_due, Decimal('18000.00'))
        self.assertEqual(nis.due_date, date(2026, 5, 14))
        self.assertEqual(nis.status, StatutoryRemittance.PENDING)

        paye = self.remittance(StatutoryRemittance.PAYE)
        self.assertEqual(paye.amount_due, Decimal('8867.50'))
        self.assertEqual(paye.employer_portion, Decimal('0.00'))

        heart = self.remittance(StatutoryRemittance.HEART_NTA)
        self.assertEqual(heart.employee_portion, Decimal('0.00'))
        self.assertEqual(heart.amount_due, Decimal('9000.00'))

    def test_generation_is_idempotent(self):
        self.approved_run([self.employee1, self.employee2])
        first = generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 1))
        second = generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 1))
        self.assertEqual(sorted(r.id for r in first), sorted(r.id for r in second))
        self.assertEqual(
            {r.remittance_type: r.amount_due for r in first}, {r.remittance_type: r.amount_due for r in second},
        )
        self.assertEqual(StatutoryRemittance.objects.filter(company=self.company).count(), 5)

    def test_zero_types_are_skipped_and_draft_runs_excluded(self):
        self.approved_run([self.employee1])
        create_payroll_run(
            self.company, self.user, frequency=MONTHLY,
            employee_inputs=[{'employee_id': str(self.employee2.id)}], **APRIL,
        )
        remittances = generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 1))
        types = {r.remittance_type for r in remittances}
        self.assertNotIn(StatutoryRemittance.PAYE, types)  # John earns below the threshold
        self.assertEqual(self.remittance(StatutoryRemittance.NIS).amount_due, Decimal('6000.00'))

    def test_paid_records_are_never_updated(self):
        self.approved_run([self.employee1, self.employee2])
        generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 1))
        pay_remittance(self.remittance(StatutoryRemittance.NIS), self.user, payment_date=date(2026, 5, 10))

        extra = Employee.objects.create(company=self.company, first_name='Late', last_name='Hire', base_salary=Decimal('100000.00'))
        self.approved_run([extra])
        generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 12))

        nis = self.remittance(StatutoryRemittance.NIS)
        self.assertEqual(nis.status, StatutoryRemittance.PAID)
        self.assertEqual(nis.amount_due, Decimal('18000.00'))
        self.assertEqual(self.remittance(StatutoryRemittance.NHT).amount_due, Decimal('20000.00'))

    def test_pay_posts_entry_and_clears_liabilities(self):
        self.approved_run([self.employee1, self.employee2])
        generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 5, 1))

        paid = pay_remittance(
            self.remittance(StatutoryRemittance.NIS), self.user,
            payment_date=date(2026, 5, 10), reference_number='TAJ-12345',
        )
        self.assertEqual(paid.status, StatutoryRemittance.PAID)
        self.assertEqual(paid.amount_paid, Decimal('18000.00'))
        self.assertEqual(paid.outstanding, Decimal('0.00'))
        self.assertEqual(paid.reference_number, 'TAJ-12345')
        self.assertEqual(paid.journal_entry.source_module, JournalEntry.REMITTANCE)
        self.assertEqual(self.balance(coa.NIS_PAYABLE), Decimal('0.00'))
        self.assertEqual(self.balance(coa.EMPLOYER_NIS_PAYABLE), Decimal('0.00'))

        pay_remittance(self.remittance(StatutoryRemittance.PAYE), self.user, payment_date=date(2026, 5, 10))
        self.assertEqual(self.balance(coa.PAYE_PAYABLE), Decimal('0.00'))

        with self.assertRaises(StateConflictError):
            pay_remittance(self.remittance(StatutoryRemittance.NIS), self.user)

    def test_overdue_status(self):
        self.approved_run([self.employee1])
        remittances = generate_remittances(self.company, self.user, 2026, 4, today=date(2026, 6, 1))
        self.assertTrue(all(r.status == StatutoryRemittance.OVERDUE for r in remittances))

        StatutoryRemittance.objects.filter(company=self.company).update(status=StatutoryRemittance.PENDING)
        self.assertEqual(refresh_overdue_statuses(self.company, today=date(2026, 5, 14)), 0)
        self.assertEqual(refresh_overdue_statuses(self.company, today=date(2026, 5, 15)), len(remittances))

    def test_month_without_runs_is_rejected(self):
        with self.assertRaises(ValidationError):
            generate_remittances(self.company, self.user, 2026, 7)
        with self.assertRaises(ValidationError):
            generate_remittances(self.company, self.user, 2026, 13)

    def test_due_date_rolls_into_next_year(self):
        self.assertEqual(get_due_date(date(2026, 12, 1)), date(2027, 1, 14))

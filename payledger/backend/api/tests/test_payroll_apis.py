from django.urls import reverse
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase
from decimal import Decimal
from payledger.backend.api.models import (
    Company, Membership, GLAccount, JournalEntry, AuditLog, Employee, PayrollRun, StatutoryRemittance,
)
from payledger.backend.api import chart_of_accounts as coa

User = get_user_model()


class LedgerAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='apiuser', password='password123')
        self.company = Company.objects.create(name='Test API Co')
        Membership.objects.create(user=self.user, company=self.company)
        self.client.login(username='apiuser', password='password123')

    def post_entry(self, lines, **extra):
        payload = {'date': '2026-05-10', 'description': 'Owner contribution', 'lines': lines}
        payload.update(extra)
        return self.client.post(reverse('journal-entry-list'), payload, format='json')

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get(reverse('account-list'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_seed_and_list_accounts(self):
        response = self.client.post(reverse('account-seed-defaults'))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], len(coa.DEFAULT_CHART_OF_ACCOUNTS))

        response = self.client.post(reverse('account-seed-defaults'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['created'], 0)

        response = self.client.get(reverse('account-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), len(coa.DEFAULT_CHART_OF_ACCOUNTS))

    def test_account_number_cannot_change(self):
        response = self.client.post(reverse('account-list'), {
            'account_number': '6500', 'name': 'Staff Welfare', 'type': GLAccount.EXPENSE,
            'normal_balance': GLAccount.DEBIT,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        account_id = response.data['id']

        response = self.client.patch(reverse('account-detail', args=[account_id]), {'account_number': '6501'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(reverse('account-detail', args=[account_id]), {'name': 'Staff Welfare & Events'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('account-list'), {
            'account_number': '6500', 'name': 'Duplicate', 'type': GLAccount.EXPENSE, 'normal_balance': GLAccount.DEBIT,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_account_type_and_normal_balance_are_fixed(self):
        self.post_entry([
            {'account_number': coa.CASH, 'debit_amount': '100.00'},
            {'account_number': coa.SALES_REVENUE, 'credit_amount': '100.00'},
        ])
        revenue = GLAccount.objects.get(company=self.company, account_number=coa.SALES_REVENUE)
        self.assertEqual(revenue.get_balance(), Decimal('100.00'))

        response = self.client.patch(
            reverse('account-detail', args=[revenue.id]),
            {'normal_balance': GLAccount.DEBIT, 'type': GLAccount.EXPENSE}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('normal_balance', response.data)
        self.assertIn('type', response.data)
        response = self.client.patch(reverse('account-detail', args=[revenue.id]), {'name': 'Other Income'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        revenue.refresh_from_db()
        self.assertEqual(revenue.type, GLAccount.INCOME)
        self.assertEqual(revenue.normal_balance, GLAccount.CREDIT)
        self.assertEqual(revenue.get_balance(), Decimal('100.00'))

        response = self.client.patch(reverse('account-detail', args=[revenue.id]), {'description': 'Counter sales'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_manual_journal_entry_and_reversal(self):
        response = self.post_entry([
            {'account_number': coa.BANK_ACCOUNT, 'debit_amount': '5000.00'},
            {'account_number': coa.OWNERS_EQUITY, 'credit_amount': '5000.00'},
        ])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['entry_number'], 'JE-00001')
        self.assertEqual(len(response.data['lines']), 2)
        entry_id = response.data['id']

        response = self.client.post(reverse('journal-entry-reverse', args=[entry_id]), {'reason': 'Posted in error'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['source_module'], JournalEntry.REVERSAL)

        response = self.client.post(reverse('journal-entry-reverse', args=[entry_id]), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'STATE_CONFLICT')

        response = self.client.get(reverse('journal-entry-list'))
        self.assertEqual(len(response.data), 2)

    def test_journal_entry_errors_map_to_status_codes(self):
        response = self.post_entry([
            {'account_number': coa.BANK_ACCOUNT, 'debit_amount': '5000.00'},
            {'account_number': coa.OWNERS_EQUITY, 'credit_amount': '4000.00'},
        ])
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['code'], 'OUT_OF_BALANCE')

        response = self.post_entry([
            {'account_number': coa.BANK_ACCOUNT, 'debit_amount': '5000.00'},
            {'account_number': '9999', 'credit_amount': '5000.00'},
        ])
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'ACCOUNT_RESOLUTION_ERROR')

        response = self.post_entry([
            {'account_number': coa.BANK_ACCOUNT, 'debit_amount': '5000.00'},
            {'account_number': coa.OWNERS_EQUITY, 'credit_amount': '0.00'},
        ])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_trial_balance_report(self):
        self.post_entry([
            {'account_number': coa.BANK_ACCOUNT, 'debit_amount': '5000.00'},
            {'account_number': coa.OWNERS_EQUITY, 'credit_amount': '5000.00'},
        ])
        response = self.client.get(reverse('report-trial-balance'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_balanced'])
        self.assertEqual(response.data['total_debits'], Decimal('5000.00'))

        response = self.client.get(reverse('report-trial-balance'), {'as_of_date': '10/05/2026'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PayrollAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='payrollapi', password='password123')
        self.company = Company.objects.create(name='Test Payroll API Co')
        Membership.objects.create(user=self.user, company=self.company)
        self.client.login(username='payrollapi', password='password123')

        self.employee = Employee.objects.create(
            company=self.company, first_name='John', last_name='Brown', base_salary=Decimal('100000.00'),
        )

    def create_run(self):
        return self.client.post(reverse('payroll-run-list'), {
            'period_start': '2026-04-01', 'period_end': '2026-04-30', 'pay_date': '2026-04-28',
            'frequency': 'MONTHLY', 'employees': [{'employee_id': str(self.employee.id)}],
        }, format='json')

    def test_employee_crud_is_company_scoped(self):
        response = self.client.post(reverse('employee-list'), {
            'first_name': 'Jane', 'last_name': 'Campbell', 'base_salary': '200000.00', 'pay_frequency': 'MONTHLY',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        created = Employee.objects.get(id=response.data['id'])
        self.assertEqual(created.company, self.company)
        self.assertEqual(created.created_by, self.user)

        other_company = Company.objects.create(name='Other API Co')
        outsider = Employee.objects.create(company=other_company, first_name='Out', last_name='Sider', base_salary=Decimal('1.00'))
        response = self.client.get(reverse('employee-detail', args=[outsider.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(len(self.client.get(reverse('employee-list')).data), 2)

    def test_loan_deduction_defaults_remaining_balance(self):
        response = self.client.post(reverse('loan-deduction-list'), {
            'employee': str(self.employee.id), 'loan_type': 'STAFF_LOAN',
            'principal_amount': '7000.00', 'monthly_deduction': '5000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['remaining_balance']), Decimal('7000.00'))

    def test_payroll_run_lifecycle(self):
        response = self.create_run()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], PayrollRun.DRAFT)
        self.assertEqual(Decimal(response.data['entries'][0]['net_pay']), Decimal('92817.50'))
        run_id = response.data['id']

        response = self.client.post(reverse('payroll-run-mark-paid', args=[run_id]), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(reverse('payroll-run-approve', args=[run_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PayrollRun.APPROVED)
        self.assertEqual(response.data['journal_entry_number'], 'JE-00001')

        response = self.client.post(reverse('payroll-run-approve', args=[run_id]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(JournalEntry.objects.filter(source_module=JournalEntry.PAYROLL).count(), 1)

        response = self.client.post(reverse('payroll-run-mark-paid', args=[run_id]), {'method': 'BANK_TRANSFER'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PayrollRun.PAID)

        self.assertTrue(AuditLog.objects.filter(company=self.company, action='approved_payroll_run').exists())
        response = self.client.get(reverse('auditlog-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertGreaterEqual(len(response.data), 3)

    def test_payroll_run_validation(self):
        response = self.client.post(reverse('payroll-run-list'), {
            'period_start': '2026-04-30', 'period_end': '2026-04-01', 'pay_date': '2026-04-28',
            'employees': [{'employee_id': str(self.employee.id)}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        other_company = Company.objects.create(name='Other Run Co')
        outsider = Employee.objects.create(company=other_company, first_name='Out', last_name='Sider', base_salary=Decimal('1.00'))
        response = self.client.post(reverse('payroll-run-list'), {
            'period_start': '2026-04-01', 'period_end': '2026-04-30', 'pay_date': '2026-04-28',
            'employees': [{'employee_id': str(outsider.id)}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')

    def test_remittance_generate_and_pay(self):
        run_id = self.create_run().data['id']
        self.client.post(reverse('payroll-run-approve', args=[run_id]))

        response = self.client.post(reverse('remittance-generate'), {'year': 2026, 'month': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 4)  # No PAYE below the threshold

        nis = StatutoryRemittance.objects.get(company=self.company, remittance_type=StatutoryRemittance.NIS)
        response = self.client.post(reverse('remittance-pay', args=[nis.id]), {'reference_number': 'TAJ-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], StatutoryRemittance.PAID)

        response = self.client.post(reverse('remittance-pay', args=[nis.id]), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.get(reverse('remittance-list'), {'status': StatutoryRemittance.PAID})
        self.assertEqual(len(response.data), 1)

        response = self.client.post(reverse('remittance-generate'), {'year': 2026, 'month': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_back_pay_preview(self):
        self.employee.base_salary = Decimal('80000.00')
        self.employee.save()
        response = self.client.post(reverse('back-pay-calculate'), {
            'employee_id': str(self.employee.id), 'new_salary': '90000.00',
            'effective_date': '2026-01-01', 'through_date': '2026-04-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['employee_name'], 'John Brown')
        self.assertEqual(response.data['periods_count'], 3)
        self.assertEqual(response.data['gross_back_pay'], Decimal('30000.00'))

        response = self.client.post(reverse('back-pay-calculate'), {
            'employee_id': str(self.employee.id), 'new_salary': '70000.00',
            'effective_date': '2026-01-01', 'through_date': '2026-04-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

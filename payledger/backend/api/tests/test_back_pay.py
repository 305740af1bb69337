from django.test import SimpleTestCase
from decimal import Decimal
from datetime import date
from payledger.backend.api.back_pay_service import calculate_back_pay, count_periods, months_between
from payledger.backend.api.exceptions import ValidationError
from payledger.backend.api.tax_calculator import MONTHLY, BIWEEKLY, WEEKLY


class BackPayTests(SimpleTestCase):

    def test_three_month_retroactive_increase(self):
        result = calculate_back_pay(
            'emp-1', Decimal('80000.00'), Decimal('90000.00'), date(2026, 1, 1), date(2026, 4, 1),
        )
        self.assertEqual(result.periods_count, 3)
        self.assertEqual(result.period_gross_difference, Decimal('10000.00'))
        self.assertEqual(result.gross_back_pay, Decimal('30000.00'))
        # Per period: NIS +300, NHT +200, Education Tax +218.25, PAYE unchanged below threshold
        self.assertEqual(result.paye, Decimal('0.00'))
        self.assertEqual(result.nis, Decimal('900.00'))
        self.assertEqual(result.nht, Decimal('600.00'))
        self.assertEqual(result.education_tax, Decimal('654.75'))
        self.assertEqual(result.net_back_pay, Decimal('27845.25'))
        self.assertEqual(result.employer_contributions, Decimal('3718.50'))
        self.assertEqual(result.total_cost, Decimal('33718.50'))

    def test_increase_into_taxable_band(self):
        result = calculate_back_pay(
            'emp-2', Decimal('150000.00'), Decimal('200000.00'), date(2026, 4, 1), date(2026, 6, 15),
        )
        self.assertEqual(result.periods_count, 2)
        # 150,000 -> 145,500 statutory income is below threshold; 200,000 -> 8,867.50 PAYE
        self.assertEqual(result.period_paye_difference, Decimal('8867.50'))
        self.assertEqual(result.paye, Decimal('17735.00'))

    def test_period_counting(self):
        self.assertEqual(months_between(date(2026, 11, 15), date(2027, 2, 1)), 3)
        self.assertEqual(count_periods(date(2026, 1, 1), date(2026, 2, 26), BIWEEKLY), 4)
        self.assertEqual(count_periods(date(2026, 1, 1), date(2026, 1, 20), WEEKLY), 2)
        self.assertEqual(count_periods(date(2026, 1, 1), date(2026, 3, 31), MONTHLY), 2)

    def test_biweekly_uses_per_period_salary(self):
        result = calculate_back_pay(
            'emp-3', Decimal('130000.00'), Decimal('143000.00'), date(2026, 1, 1), date(2026, 2, 26), frequency=BIWEEKLY,
        )
        self.assertEqual(result.old_period_salary, Decimal('60000.00'))
        self.assertEqual(result.new_period_salary, Decimal('66000.00'))
        self.assertEqual(result.gross_back_pay, Decimal('24000.00'))

    def test_invalid_requests(self):
        with self.assertRaises(ValidationError):
            calculate_back_pay('emp', Decimal('90000.00'), Decimal('90000.00'), date(2026, 1, 1), date(2026, 4, 1))
        with self.assertRaises(ValidationError):
            calculate_back_pay('emp', Decimal('80000.00'), Decimal('90000.00'), date(2026, 4, 1), date(2026, 1, 1))
        with self.assertRaises(ValidationError):
            calculate_back_pay('emp', Decimal('80000.00'), Decimal('90000.00'), date(2026, 4, 1), date(2026, 4, 20))
        with self.assertRaises(ValidationError):
            calculate_back_pay('emp', 'abc', Decimal('90000.00'), date(2026, 1, 1), date(2026, 4, 1))
        with self.assertRaises(ValidationError):
            calculate_back_pay('emp', Decimal('80000.00'), Decimal('90000.00'), date(2026, 1, 1), date(2026, 4, 1), frequency='DAILY')

    def test_as_dict(self):
        payload = calculate_back_pay('emp-1', '80000', '90000', date(2026, 1, 1), date(2026, 4, 1)).as_dict()
        self.assertEqual(payload['employee_id'], 'emp-1')
        self.assertEqual(payload['gross_back_pay'], Decimal('30000.00'))

'''
Default chart of accounts for Jamaica-based companies.

Numbering:
    1000-1999 assets, 2000-2999 liabilities, 3000-3999 equity,
    4000-4999 income, 5000-5999 cost of goods sold,
    6000-6999 operating expenses, 7000-7999 other income/expenses.

System codes are referenced by the posting templates and must not be
renumbered without a data migration.
'''
from typing import NamedTuple, Optional

from django.core.exceptions import ImproperlyConfigured
from django.db import models

from .exceptions import ValidationError

CHART_VERSION = '2026.1'


class DefaultAccount(NamedTuple):
    account_number: str
    name: str
    type: str
    normal_balance: str
    sub_type: str = ''
    is_control_account: bool = False
    is_tax_account: bool = False
    is_bank_account: bool = False
    description: Optional[str] = None


# Assets
CASH = '1000'
PETTY_CASH = '1010'
BANK_ACCOUNT = '1020'
ACCOUNTS_RECEIVABLE = '1100'
INVENTORY = '1200'
PREPAID_EXPENSES = '1300'
FIXED_ASSETS = '1500'
ACCUMULATED_DEPRECIATION = '1510'

# Liabilities
ACCOUNTS_PAYABLE = '2000'
GCT_PAYABLE = '2100'
GCT_INPUT_TAX = '2110'
PAYE_PAYABLE = '2200'
NIS_PAYABLE = '2210'
NHT_PAYABLE = '2220'
EDUCATION_TAX_PAYABLE = '2230'
HEART_NTA_PAYABLE = '2240'
WHT_PAYABLE = '2250'
SALARIES_PAYABLE = '2300'
EMPLOYER_NIS_PAYABLE = '2310'
EMPLOYER_NHT_PAYABLE = '2320'
EMPLOYER_EDUCATION_TAX_PAYABLE = '2330'
PAYROLL_DEDUCTIONS_PAYABLE = '2340'
UNEARNED_REVENUE = '2400'

# Equity
OWNERS_EQUITY = '3000'
RETAINED_EARNINGS = '3100'
CURRENT_YEAR_EARNINGS = '3200'

# Income
SALES_REVENUE = '4000'
SERVICE_REVENUE = '4100'
OTHER_INCOME = '4500'
DISCOUNT_GIVEN = '4900'

COST_OF_GOODS_SOLD = '5000'

# Operating expenses
ADVERTISING_EXPENSE = '6000'
BANK_FEES_EXPENSE = '6010'
CONTRACTOR_EXPENSE = '6020'
DEPRECIATION_EXPENSE = '6030'
EQUIPMENT_EXPENSE = '6040'
INSURANCE_EXPENSE = '6050'
MEALS_EXPENSE = '6060'
OFFICE_SUPPLIES_EXPENSE = '6070'
PROFESSIONAL_SERVICES_EXPENSE = '6080'
RENT_EXPENSE = '6090'
REPAIRS_EXPENSE = '6100'
SALARY_EXPENSE = '6110'
EMPLOYER_PAYROLL_TAX_EXPENSE = '6120'
SOFTWARE_EXPENSE = '6130'
TAXES_EXPENSE = '6140'
TELEPHONE_EXPENSE = '6150'
TRAVEL_EXPENSE = '6160'
UTILITIES_EXPENSE = '6170'
VEHICLE_EXPENSE = '6180'
MISCELLANEOUS_EXPENSE = '6190'

# Other
INTEREST_INCOME = '7000'
INTEREST_EXPENSE = '7100'
GAIN_ON_DISPOSAL = '7200'
LOSS_ON_DISPOSAL = '7300'

DEBIT = 'debit'
CREDIT = 'credit'


def _asset(number, name, sub_type='CURRENT', normal_balance=DEBIT, **flags):
    return DefaultAccount(number, name, 'ASSET', normal_balance, sub_type, **flags)


def _liability(number, name, normal_balance=CREDIT, **flags):
    return DefaultAccount(number, name, 'LIABILITY', normal_balance, 'CURRENT', **flags)


def _expense(number, name, sub_type='OPERATING', **flags):
    return DefaultAccount(number, name, 'EXPENSE', DEBIT, sub_type, **flags)


DEFAULT_CHART_OF_ACCOUNTS = (
    _asset(CASH, 'Cash on Hand'),
    _asset(PETTY_CASH, 'Petty Cash'),
    _asset(BANK_ACCOUNT, 'Bank Account', is_bank_account=True),
    _asset(ACCOUNTS_RECEIVABLE, 'Accounts Receivable', is_control_account=True, description='Money owed by customers'),
    _asset(INVENTORY, 'Inventory'),
    _asset(PREPAID_EXPENSES, 'Prepaid Expenses'),
    _asset(FIXED_ASSETS, 'Fixed Assets', sub_type='NON_CURRENT'),
    _asset(ACCUMULATED_DEPRECIATION, 'Accumulated Depreciation', sub_type='NON_CURRENT', normal_balance=CREDIT),

    _liability(ACCOUNTS_PAYABLE, 'Accounts Payable', is_control_account=True, description='Money owed to vendors'),
    _liability(GCT_PAYABLE, 'GCT Payable (Output Tax)', is_tax_account=True, description='GCT collected on sales'),
    _liability(GCT_INPUT_TAX, 'GCT Input Tax Credit', normal_balance=DEBIT, is_tax_account=True,
               description='GCT paid on purchases (claimable)'),
    _liability(PAYE_PAYABLE, 'PAYE Payable', is_tax_account=True),
    _liability(NIS_PAYABLE, 'NIS Payable (Employee)', is_tax_account=True),
    _liability(NHT_PAYABLE, 'NHT Payable (Employee)', is_tax_account=True),
    _liability(EDUCATION_TAX_PAYABLE, 'Education Tax Payable (Employee)', is_tax_account=True),
    _liability(HEART_NTA_PAYABLE, 'HEART/NTA Payable', is_tax_account=True),
    _liability(WHT_PAYABLE, 'Withholding Tax Payable', is_tax_account=True,
               description='WHT deducted from contractor payments'),
    _liability(SALARIES_PAYABLE, 'Salaries & Wages Payable'),
    _liability(EMPLOYER_NIS_PAYABLE, 'NIS Payable (Employer)', is_tax_account=True),
    _liability(EMPLOYER_NHT_PAYABLE, 'NHT Payable (Employer)', is_tax_account=True),
    _liability(EMPLOYER_EDUCATION_TAX_PAYABLE, 'Education Tax Payable (Employer)', is_tax_account=True),
    _liability(PAYROLL_DEDUCTIONS_PAYABLE, 'Payroll Deductions Payable',
               description='Loan repayments and other amounts withheld from employees'),
    _liability(UNEARNED_REVENUE, 'Unearned Revenue'),

    DefaultAccount(OWNERS_EQUITY, "Owner's Equity / Capital", 'EQUITY', CREDIT),
    DefaultAccount(RETAINED_EARNINGS, 'Retained Earnings', 'EQUITY', CREDIT),
    DefaultAccount(CURRENT_YEAR_EARNINGS, 'Current Year Earnings', 'EQUITY', CREDIT),

    DefaultAccount(SALES_REVENUE, 'Sales Revenue', 'INCOME', CREDIT),
    DefaultAccount(SERVICE_REVENUE, 'Service Revenue', 'INCOME', CREDIT),
    DefaultAccount(OTHER_INCOME, 'Other Income', 'INCOME', CREDIT),
    DefaultAccount(DISCOUNT_GIVEN, 'Discounts Given', 'INCOME', DEBIT),

    _expense(COST_OF_GOODS_SOLD, 'Cost of Goods Sold', sub_type='COGS'),

    _expense(ADVERTISING_EXPENSE, 'Advertising & Marketing'),
    _expense(BANK_FEES_EXPENSE, 'Bank Fees & Charges'),
    _expense(CONTRACTOR_EXPENSE, 'Contractor Expense'),
    _expense(DEPRECIATION_EXPENSE, 'Depreciation Expense'),
    _expense(EQUIPMENT_EXPENSE, 'Equipment Expense'),
    _expense(INSURANCE_EXPENSE, 'Insurance'),
    _expense(MEALS_EXPENSE, 'Meals & Entertainment'),
    _expense(OFFICE_SUPPLIES_EXPENSE, 'Office Supplies'),
    _expense(PROFESSIONAL_SERVICES_EXPENSE, 'Professional Services'),
    _expense(RENT_EXPENSE, 'Rent'),
    _expense(REPAIRS_EXPENSE, 'Repairs & Maintenance'),
    _expense(SALARY_EXPENSE, 'Salaries & Wages'),
    _expense(EMPLOYER_PAYROLL_TAX_EXPENSE, 'Employer Payroll Taxes', description='Employer NIS, NHT, Ed Tax, HEART/NTA'),
    _expense(SOFTWARE_EXPENSE, 'Software & Technology'),
    _expense(TAXES_EXPENSE, 'Taxes & Licences'),
    _expense(TELEPHONE_EXPENSE, 'Telephone & Internet'),
    _expense(TRAVEL_EXPENSE, 'Travel'),
    _expense(UTILITIES_EXPENSE, 'Utilities'),
    _expense(VEHICLE_EXPENSE, 'Vehicle Expense'),
    _expense(MISCELLANEOUS_EXPENSE, 'Miscellaneous Expense'),

    DefaultAccount(INTEREST_INCOME, 'Interest Income', 'INCOME', CREDIT, 'OTHER'),
    _expense(INTEREST_EXPENSE, 'Interest Expense', sub_type='OTHER'),
    DefaultAccount(GAIN_ON_DISPOSAL, 'Gain on Asset Disposal', 'INCOME', CREDIT, 'OTHER'),
    _expense(LOSS_ON_DISPOSAL, 'Loss on Asset Disposal', sub_type='OTHER'),
)

DEFAULT_ACCOUNTS_BY_NUMBER = {account.account_number: account for account in DEFAULT_CHART_OF_ACCOUNTS}


def get_default_account(account_number):
    return DEFAULT_ACCOUNTS_BY_NUMBER.get(account_number)


def is_system_account_number(account_number):
    return account_number in DEFAULT_ACCOUNTS_BY_NUMBER


class ExpenseCategory(models.TextChoices):
    ADVERTISING = 'ADVERTISING', 'Advertising'
    BANK_FEES = 'BANK_FEES', 'Bank Fees'
    CONTRACTOR = 'CONTRACTOR', 'Contractor'
    ENTERTAINMENT = 'ENTERTAINMENT', 'Entertainment'
    EQUIPMENT = 'EQUIPMENT', 'Equipment'
    INSURANCE = 'INSURANCE', 'Insurance'
    INVENTORY = 'INVENTORY', 'Inventory'
    MEALS = 'MEALS', 'Meals'
    OFFICE_SUPPLIES = 'OFFICE_SUPPLIES', 'Office Supplies'
    PROFESSIONAL_SERVICES = 'PROFESSIONAL_SERVICES', 'Professional Services'
    RENT = 'RENT', 'Rent'
    REPAIRS = 'REPAIRS', 'Repairs'
    SALARIES = 'SALARIES', 'Salaries'
    SOFTWARE = 'SOFTWARE', 'Software'
    TAXES = 'TAXES', 'Taxes'
    TELEPHONE = 'TELEPHONE', 'Telephone'
    TRAVEL = 'TRAVEL', 'Travel'
    UTILITIES = 'UTILITIES', 'Utilities'
    VEHICLE = 'VEHICLE', 'Vehicle'
    OTHER = 'OTHER', 'Other'


EXPENSE_CATEGORY_ACCOUNTS = {
    ExpenseCategory.ADVERTISING: ADVERTISING_EXPENSE,
    ExpenseCategory.BANK_FEES: BANK_FEES_EXPENSE,
    ExpenseCategory.CONTRACTOR: CONTRACTOR_EXPENSE,
    ExpenseCategory.ENTERTAINMENT: MEALS_EXPENSE,
    ExpenseCategory.EQUIPMENT: EQUIPMENT_EXPENSE,
    ExpenseCategory.INSURANCE: INSURANCE_EXPENSE,
    ExpenseCategory.INVENTORY: COST_OF_GOODS_SOLD,
    ExpenseCategory.MEALS: MEALS_EXPENSE,
    ExpenseCategory.OFFICE_SUPPLIES: OFFICE_SUPPLIES_EXPENSE,
    ExpenseCategory.PROFESSIONAL_SERVICES: PROFESSIONAL_SERVICES_EXPENSE,
    ExpenseCategory.RENT: RENT_EXPENSE,
    ExpenseCategory.REPAIRS: REPAIRS_EXPENSE,
    ExpenseCategory.SALARIES: SALARY_EXPENSE,
    ExpenseCategory.SOFTWARE: SOFTWARE_EXPENSE,
    ExpenseCategory.TAXES: TAXES_EXPENSE,
    ExpenseCategory.TELEPHONE: TELEPHONE_EXPENSE,
    ExpenseCategory.TRAVEL: TRAVEL_EXPENSE,
    ExpenseCategory.UTILITIES: UTILITIES_EXPENSE,
    ExpenseCategory.VEHICLE: VEHICLE_EXPENSE,
    ExpenseCategory.OTHER: MISCELLANEOUS_EXPENSE,
}


def validate_category_map(category_map=None):
    '''Fail at startup if any expense category is unmapped or points outside the chart.'''
    category_map = EXPENSE_CATEGORY_ACCOUNTS if category_map is None else category_map
    missing = [category.value for category in ExpenseCategory if category not in category_map]
    if missing:
        raise ImproperlyConfigured(f'Expense categories without a GL account: {", ".join(missing)}')
    unknown = {
        str(category): number for category, number in category_map.items()
        if not is_system_account_number(number)
    }
    if unknown:
        raise ImproperlyConfigured(f'Expense categories mapped to accounts outside the default chart: {unknown}')


def expense_account_for(category):
    try:
        return EXPENSE_CATEGORY_ACCOUNTS[ExpenseCategory(category)]
    except ValueError:
        raise ValidationError(f'Unknown expense category: {category!r}') from None

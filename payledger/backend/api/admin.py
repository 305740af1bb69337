from django.contrib import admin
from .models import (
    Company, Membership,
    GLAccount, JournalSequence, JournalEntry, JournalLine, AuditLog,
    PensionPlan, Employee, LoanDeduction, PayrollRun, PayrollEntry, StatutoryRemittance,
)


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    extra = 0
    can_delete = False
    readonly_fields = ['line_number', 'account', 'debit_amount', 'credit_amount', 'description']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = ['entry_number', 'company', 'date', 'source_module', 'total_debits', 'is_reversed']
    list_filter = ['company', 'source_module', 'is_reversed']
    inlines = [JournalLineInline]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(GLAccount)
class GLAccountAdmin(admin.ModelAdmin):
    list_display = ['account_number', 'name', 'company', 'type', 'normal_balance', 'is_system_account', 'is_active']
    list_filter = ['company', 'type', 'is_system_account']


admin.site.register(Company)
admin.site.register(Membership)
admin.site.register(JournalSequence)
admin.site.register(AuditLog)
admin.site.register(PensionPlan)
admin.site.register(Employee)
admin.site.register(LoanDeduction)
admin.site.register(PayrollRun)
admin.site.register(PayrollEntry)
admin.site.register(StatutoryRemittance)

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    GLAccountViewSet, JournalEntryViewSet,
    AuditLogListView, TrialBalanceView,
    # Payroll Views
    EmployeeViewSet, PensionPlanViewSet, LoanDeductionViewSet, PayrollRunViewSet,
    StatutoryRemittanceViewSet, BackPayCalculateView,
)
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

router = DefaultRouter()
router.register(r'accounts', GLAccountViewSet, basename='account')
router.register(r'journal-entries', JournalEntryViewSet, basename='journal-entry')
router.register(r'employees', EmployeeViewSet, basename='employee')
router.register(r'pension-plans', PensionPlanViewSet, basename='pension-plan')
router.register(r'loan-deductions', LoanDeductionViewSet, basename='loan-deduction')
router.register(r'payroll-runs', PayrollRunViewSet, basename='payroll-run')
router.register(r'remittances', StatutoryRemittanceViewSet, basename='remittance')


urlpatterns = [
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auditlogs/', AuditLogListView.as_view(), name='auditlog-list'),
    path('back-pay/calculate/', BackPayCalculateView.as_view(), name='back-pay-calculate'),
    path('reports/trial-balance/', TrialBalanceView.as_view(), name='report-trial-balance'),

    path('', include(router.urls)),
]

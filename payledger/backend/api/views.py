from .models import (
    GLAccount, JournalEntry, AuditLog,
    PensionPlan, Employee, LoanDeduction, PayrollRun, StatutoryRemittance,
)
from .serializers import (
    GLAccountSerializer, JournalEntrySerializer, JournalEntryInputSerializer, ReverseJournalEntrySerializer,
    AuditLogSerializer, PensionPlanSerializer, EmployeeSerializer, LoanDeductionSerializer,
    PayrollRunSerializer, PayrollRunCreateSerializer, MarkPayrollPaidSerializer,
    StatutoryRemittanceSerializer, GenerateRemittancesSerializer, PayRemittanceSerializer,
    BackPayRequestSerializer,
)
from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework.response import Response
from rest_framework.exceptions import PermissionDenied
from rest_framework.decorators import action
from rest_framework.views import APIView
import logging
from datetime import date
from . import account_utils
from . import back_pay_service
from . import payroll_service
from . import posting_service
from . import remittance_service
from . import reporting_service
from .exceptions import (
    LedgerError, ValidationError, OutOfBalanceError, AccountResolutionError, StateConflictError, PersistenceError,
)

logger = logging.getLogger(__name__)

LEDGER_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AccountResolutionError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (OutOfBalanceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def ledger_error_response(error: LedgerError, context: str):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, error_status in LEDGER_ERROR_STATUS:
        if isinstance(error, error_class):
            http_status = error_status
            break
    if http_status >= 500:
        logger.error(f'{context} failed: {error}')
    else:
        logger.warning(f'{context} rejected: {error}')
    return Response(error.to_dict(), status=http_status)


class CompanyScopedViewMixin:
    def get_company(self):
        if not hasattr(self.request.user, 'membership_set'):
            raise PermissionDenied('User has no membership information.')
        membership = self.request.user.membership_set.select_related('company').first()
        if not membership:
            raise PermissionDenied('User is not associated with any company.')
        return membership.company

    def get_queryset(self):
        queryset = super().get_queryset()
        return queryset.filter(company=self.get_company())

    def perform_create(self, serializer):
        save_kwargs = {'company': self.get_company()}
        if 'created_by' in [field.name for field in serializer.Meta.model._meta.fields]:
            save_kwargs['created_by'] = self.request.user
        serializer.save(**save_kwargs)


class GLAccountViewSet(CompanyScopedViewMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                       mixins.CreateModelMixin, mixins.UpdateModelMixin, viewsets.GenericViewSet):
    queryset = GLAccount.objects.all()
    serializer_class = GLAccountSerializer
    permission_classes = [permissions.IsAuthenticated]

    @action(detail=False, methods=['post'], url_path='seed-defaults', url_name='seed-defaults')
    def seed_defaults(self, request):
        company = self.get_company()
        created = account_utils.seed_default_accounts(company)
        AuditLog.objects.create(company=company, user=request.user, action='seeded_default_accounts', details={'created': created})
        return Response({'created': created}, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


class JournalEntryViewSet(CompanyScopedViewMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                          mixins.CreateModelMixin, viewsets.GenericViewSet):
    queryset = JournalEntry.objects.all().prefetch_related('lines__account').order_by('-date', '-entry_number')
    serializer_class = JournalEntrySerializer
    permission_classes = [permissions.IsAuthenticated]

    def create(self, request, *args, **kwargs):
        serializer = JournalEntryInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        company = self.get_company()
        try:
            entry = posting_service.post_journal_entry(
                company, request.user,
                date=data['date'],
                description=data['description'],
                source_module=JournalEntry.MANUAL,
                source_document_id=None,
                lines=[dict(line) for line in data['lines']],
                reference=data.get('reference'),
            )
        except LedgerError as e:
            return ledger_error_response(e, 'Manual journal entry')
        AuditLog.objects.create(company=company, user=request.user, action='posted_journal_entry',
                                details={'journal_entry_id': str(entry.id), 'entry_number': entry.entry_number})
        return Response(JournalEntrySerializer(entry).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='reverse', url_name='reverse')
    def reverse(self, request, pk=None):
        entry = self.get_object()
        serializer = ReverseJournalEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            reversal = posting_service.reverse_journal_entry(
                entry, request.user, date=serializer.validated_data.get('date'),
                reason=serializer.validated_data.get('reason'),
            )
        except LedgerError as e:
            return ledger_error_response(e, f'Reversal of journal entry {entry.entry_number}')
        AuditLog.objects.create(company=entry.company, user=request.user, action='reversed_journal_entry',
                                details={'journal_entry_id': str(entry.id), 'reversal_id': str(reversal.id)})
        return Response(JournalEntrySerializer(reversal).data, status=status.HTTP_201_CREATED)


class AuditLogListView(CompanyScopedViewMixin, generics.ListAPIView):
    queryset = AuditLog.objects.all().order_by('-timestamp')
    serializer_class = AuditLogSerializer
    permission_classes = [permissions.IsAuthenticated]


class TrialBalanceView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        membership = request.user.membership_set.first()
        if not membership: return Response({'error': 'User not associated with a company.'}, status=status.HTTP_400_BAD_REQUEST)
        company = membership.company
        as_of_date = None
        as_of_date_str = request.query_params.get('as_of_date')
        if as_of_date_str:
            try:
                as_of_date = date.fromisoformat(as_of_date_str)
            except ValueError: return Response({'error': 'Invalid date format for as_of_date. Use YYYY-MM-DD.'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(reporting_service.get_trial_balance_data(company, as_of_date))


# Payroll Views
class PensionPlanViewSet(CompanyScopedViewMixin, viewsets.ModelViewSet):
    queryset = PensionPlan.objects.all()
    serializer_class = PensionPlanSerializer
    permission_classes = [permissions.IsAuthenticated]


class EmployeeViewSet(CompanyScopedViewMixin, viewsets.ModelViewSet):
    queryset = Employee.objects.all()
    serializer_class = EmployeeSerializer
    permission_classes = [permissions.IsAuthenticated]


class LoanDeductionViewSet(CompanyScopedViewMixin, viewsets.ModelViewSet):
    queryset = LoanDeduction.objects.all().select_related('employee')
    serializer_class = LoanDeductionSerializer
    permission_classes = [permissions.IsAuthenticated]


class PayrollRunViewSet(CompanyScopedViewMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                        mixins.CreateModelMixin, viewsets.GenericViewSet):
    queryset = PayrollRun.objects.all().prefetch_related('entries', 'entries__employee').select_related('journal_entry')
    serializer_class = PayrollRunSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return super().get_queryset().order_by('-pay_date')

    def create(self, request, *args, **kwargs):
        serializer = PayrollRunCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            payroll_run = payroll_service.create_payroll_run(
                self.get_company(), request.user,
                period_start=data['period_start'], period_end=data['period_end'], pay_date=data['pay_date'],
                frequency=data['frequency'],
                employee_inputs=[dict(emp_input) for emp_input in data['employees']],
            )
        except LedgerError as e:
            return ledger_error_response(e, 'Payroll run creation')
        return Response(PayrollRunSerializer(payroll_run).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='approve', url_name='approve')
    def approve(self, request, pk=None):
        payroll_run = self.get_object()
        try:
            approved_run = payroll_service.approve_payroll_run(payroll_run, request.user)
            return Response(PayrollRunSerializer(approved_run).data)
        except LedgerError as e:
            return ledger_error_response(e, f'Approval of payroll run {payroll_run.id}')
        except Exception as e:
            logger.exception(f'Error approving payroll run {payroll_run.id}: {e}')
            return Response({'error': 'Failed to approve payroll run.'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @action(detail=True, methods=['post'], url_path='mark-paid', url_name='mark-paid')
    def mark_paid(self, request, pk=None):
        payroll_run = self.get_object()
        serializer = MarkPayrollPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            paid_run = payroll_service.mark_payroll_run_paid(
                payroll_run, request.user,
                payment_date=serializer.validated_data.get('payment_date'),
                method=serializer.validated_data['method'],
            )
            return Response(PayrollRunSerializer(paid_run).data)
        except LedgerError as e:
            return ledger_error_response(e, f'Payment of payroll run {payroll_run.id}')


class StatutoryRemittanceViewSet(CompanyScopedViewMixin, viewsets.ReadOnlyModelViewSet):
    queryset = StatutoryRemittance.objects.all().select_related('journal_entry')
    serializer_class = StatutoryRemittanceSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = super().get_queryset()
        status_param = self.request.query_params.get('status')
        if status_param:
            queryset = queryset.filter(status=status_param)
        return queryset

    @action(detail=False, methods=['post'], url_path='generate', url_name='generate')
    def generate(self, request):
        serializer = GenerateRemittancesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            remittances = remittance_service.generate_remittances(
                self.get_company(), request.user,
                serializer.validated_data['year'], serializer.validated_data['month'],
            )
        except LedgerError as e:
            return ledger_error_response(e, 'Remittance generation')
        return Response(StatutoryRemittanceSerializer(remittances, many=True).data)

    @action(detail=True, methods=['post'], url_path='pay', url_name='pay')
    def pay(self, request, pk=None):
        remittance = self.get_object()
        serializer = PayRemittanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            paid = remittance_service.pay_remittance(
                remittance, request.user,
                payment_date=serializer.validated_data.get('payment_date'),
                reference_number=serializer.validated_data.get('reference_number') or None,
                method=serializer.validated_data['method'],
            )
        except LedgerError as e:
            return ledger_error_response(e, f'Payment of remittance {remittance.id}')
        return Response(StatutoryRemittanceSerializer(paid).data)


class BackPayCalculateView(CompanyScopedViewMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = BackPayRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            employee = Employee.objects.get(id=data['employee_id'], company=self.get_company())
        except Employee.DoesNotExist:
            return Response({'error': 'Employee not found.'}, status=status.HTTP_404_NOT_FOUND)
        try:
            result = back_pay_service.calculate_back_pay(
                employee.id,
                old_salary=data.get('old_salary', employee.base_salary),
                new_salary=data['new_salary'],
                effective_date=data['effective_date'],
                through_date=data['through_date'],
                frequency=data.get('frequency') or employee.pay_frequency,
            )
        except LedgerError as e:
            return ledger_error_response(e, f'Back pay calculation for employee {employee.id}')
        return Response({'employee_name': employee.full_name, **result.as_dict()})

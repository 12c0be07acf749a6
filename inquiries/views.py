from django_filters import rest_framework as django_filters
from rest_framework import filters as drf_filters
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated

from core.logger_service import get_logger
from core.pagination import OptionalPagination
from core.permissions import IsPresalesOrAdmin, IsSalesOrAdmin, IsStaffRole
from core.responses import api_response
from .dashboard import DashboardService
from .filters import InquiryFilter
from .models import Inquiry
from .serializers import (
    AdmittedInquirySerializer, AssignSerializer, FollowUpWriteSerializer, InquiryListSerializer,
    InquirySerializer, InquiryWriteSerializer, MyFollowUpSerializer, ReassignSerializer,
)
from .services import AssignmentService, FollowUpService
from .visibility import parse_user_ref, search_q, visibility_for

logger = get_logger()


class InquiryViewSet(viewsets.ModelViewSet):
    """
    Inquiries and their lifecycle.

    Listing is scoped by the actor's role. Detail routes load the row first so
    a missing inquiry (404) stays distinct from one the actor may not touch
    (403).
    """
    permission_classes = [IsAuthenticated]
    pagination_class = OptionalPagination
    filter_backends = [django_filters.DjangoFilterBackend, drf_filters.OrderingFilter]
    filterset_class = InquiryFilter
    ordering_fields = ['created_at', 'updated_at', 'name', 'status']
    ordering = ['-created_at']
    lookup_value_regex = '[0-9]+'
    list_message = 'Inquiries retrieved successfully'
    list_key = 'inquiries'

    def get_permissions(self):
        if self.action in ('assign', 'reassign', 'forward_to_sales'):
            return [IsPresalesOrAdmin()]
        if self.action == 'reassign_sales':
            return [IsSalesOrAdmin()]
        if self.action in ('claim', 'move_to_unattended', 'my_follow_ups'):
            return [IsStaffRole()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return InquiryWriteSerializer
        if self.action == 'list':
            return InquiryListSerializer
        return InquirySerializer

    def get_queryset(self):
        queryset = Inquiry.objects.with_people()
        if self.action != 'list':
            return queryset.prefetch_related('follow_ups__created_by')

        user = self.request.user
        assigned_to = parse_user_ref(self.request.query_params.get('assigned_to'), user, 'assigned_to')
        queryset = queryset.filter(visibility_for(user).scope(assigned_to))
        if self.request.query_params.get('include_admitted', '').lower() != 'true':
            queryset = queryset.not_admitted()
        return queryset

    def _inquiry_response(self, message, inquiry, status_code=status.HTTP_200_OK):
        inquiry = self.get_queryset().get(pk=inquiry.pk)
        return api_response(message, {'inquiry': InquirySerializer(inquiry).data}, status=status_code)

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(InquiryListSerializer(page, many=True).data)
        return api_response(self.list_message, {self.list_key: InquiryListSerializer(queryset, many=True).data})

    def retrieve(self, request, *args, **kwargs):
        inquiry = self.get_object()
        AssignmentService.ensure_can_view(inquiry, request.user)
        return api_response('Inquiry retrieved successfully', {'inquiry': InquirySerializer(inquiry).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        inquiry = AssignmentService.create_inquiry(request.user, serializer.validated_data)
        return self._inquiry_response('Inquiry created successfully', inquiry, status_code=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        inquiry = self.get_object()
        AssignmentService.ensure_can_update(inquiry, request.user)
        serializer = self.get_serializer(inquiry, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Inquiry {inquiry.pk} updated by {request.user.username}")
        return self._inquiry_response('Inquiry updated successfully', inquiry)

    def destroy(self, request, *args, **kwargs):
        inquiry = self.get_object()
        AssignmentService.ensure_can_delete(inquiry, request.user)
        inquiry.delete()
        logger.info(f"Inquiry {kwargs.get('pk')} deleted by {request.user.username}")
        return api_response('Inquiry deleted successfully')

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        inquiry = self.get_object()
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        AssignmentService.assign(inquiry, request.user, serializer.validated_data['assigned_to'])
        return self._inquiry_response('Inquiry assigned successfully', inquiry)

    @action(detail=True, methods=['post'])
    def claim(self, request, pk=None):
        inquiry = self.get_object()
        AssignmentService.claim(inquiry, request.user)
        return self._inquiry_response('Inquiry claimed successfully', inquiry)

    @action(detail=True, methods=['post'], url_path='forward-to-sales')
    def forward_to_sales(self, request, pk=None):
        inquiry = self.get_object()
        AssignmentService.forward_to_sales(inquiry, request.user)
        return self._inquiry_response('Inquiry forwarded to Sales successfully', inquiry)

    @action(detail=True, methods=['post'])
    def reassign(self, request, pk=None):
        inquiry = self.get_object()
        serializer = ReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        AssignmentService.reassign_to_presales(inquiry, request.user, serializer.validated_data['target_user_id'])
        return self._inquiry_response('Inquiry reassigned successfully', inquiry)

    @action(detail=True, methods=['post'], url_path='reassign-sales')
    def reassign_sales(self, request, pk=None):
        inquiry = self.get_object()
        serializer = ReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        AssignmentService.reassign_to_sales(inquiry, request.user, serializer.validated_data['target_user_id'])
        return self._inquiry_response('Inquiry reassigned successfully', inquiry)

    @action(detail=True, methods=['post'], url_path='move-to-unattended')
    def move_to_unattended(self, request, pk=None):
        inquiry = self.get_object()
        AssignmentService.move_to_unattended(inquiry, request.user)
        return self._inquiry_response('Inquiry moved to unattended successfully', inquiry)

    @action(detail=True, methods=['post'], url_path='follow-ups')
    def follow_ups(self, request, pk=None):
        inquiry = self.get_object()
        serializer = FollowUpWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        FollowUpService.add_follow_up(inquiry, request.user, serializer.validated_data)
        return self._inquiry_response('Follow-up added successfully', inquiry, status_code=status.HTTP_201_CREATED)

    @action(
        detail=True,
        methods=['put', 'patch', 'delete'],
        url_path=r'follow-ups/(?P<follow_up_id>[0-9]+)',
    )
    def follow_up_detail(self, request, pk=None, follow_up_id=None):
        inquiry = self.get_object()
        if request.method == 'DELETE':
            FollowUpService.delete_follow_up(inquiry, request.user, follow_up_id)
            return self._inquiry_response('Follow-up deleted successfully', inquiry)

        follow_up = FollowUpService.get_follow_up(inquiry, follow_up_id)
        FollowUpService.ensure_can_update(follow_up, request.user)
        serializer =FollowUpWriteSerializer(follow_up, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        FollowUpService.update_follow_up(inquiry, request.user, follow_up_id, serializer.validated_data)
        return self._inquiry_response('Follow-up updated successfully', inquiry)

    @action(detail=False, methods=['get'], url_path='my-follow-ups')
    def my_follow_ups(self, request):
        follow_ups = FollowUpService.my_follow_ups(request.user)
        return api_response(
            'Follow-ups retrieved successfully',
            {'follow_ups': MyFollowUpSerializer(follow_ups, many=True).data},
        )

    @action(detail=False, methods=['get'], url_path='check-phone')
    def check_phone(self, request):
        phone = request.query_params.get('phone')
        if not phone:
            raise ValidationError({'phone': ['Phone number is required']})
        result = AssignmentService.check_phone_exists(request.user, phone)
        message = 'Phone number already exists' if result['exists'] else 'Phone number is available'
        return api_response(message, result)

    @action(detail=False, methods=['get'])
    def admitted(self, request):
        queryset = FollowUpService.admitted_inquiries(request.user)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(search_q(search))
        page = self.paginate_queryset(queryset)
        serializer_data = AdmittedInquirySerializer(page if page is not None else queryset, many=True).data
        if page is not None:
            return self.get_paginated_response(serializer_data)
        return api_response('Admitted students retrieved successfully', {'inquiries': serializer_data})


class DashboardViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=['get'])
    def stats(self, request):
        stats = DashboardService.stats(request.user)
        stats['recent_inquiries'] = InquiryListSerializer(stats['recent_inquiries'], many=True).data
        return api_response('Dashboard stats retrieved successfully', stats)

    @action(detail=False, methods=['get'], url_path='unattended-counts')
    def unattended_counts(self, request):
        return api_response('Unattended counts retrieved successfully', DashboardService.unattended_counts(request.user))

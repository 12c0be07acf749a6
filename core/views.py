from rest_framework import generics, viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView
from django_filters import rest_framework as filters
from rest_framework.filters import OrderingFilter, SearchFilter

from core.logger_service import get_logger
from core.pagination import OptionalPagination
from core.permissions import IsAdmin, IsAdminOrReadOnly, IsStaffRole
from core.responses import api_response
from .models import CustomUser, OptionSettings
from .serializers import (
    CustomTokenObtainPairSerializer, OptionSettingsSerializer, RegisterSerializer, UserListSerializer,
    UserManagementSerializer, UserSerializer,
)

logger = get_logger()


class LoginView(TokenObtainPairView):
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = CustomTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        logger.info(f"Login attempt for: {request.data.get('username', request.data.get('email'))}")
        response = super().post(request, *args, **kwargs)
        return api_response('Login successful', response.data)


class RegisterView(generics.CreateAPIView):
    """
    Self registration. Accounts default to the ``user`` role; the ``admin``
    role is only granted while no admin exists yet.
    """
    queryset = CustomUser.objects.all()
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = RegisterSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if serializer.validated_data.get('role') == 'admin' and CustomUser.objects.filter(role='admin').exists():
            raise PermissionDenied(
                'Admin role cannot be created through registration. An admin account already exists.'
            )
        user = serializer.save()
        logger.info(f"User {user.username} registered with role {user.role}")
        refresh = RefreshToken.for_user(user)
        return api_response(
            'User registered successfully',
            {
                'user': UserSerializer(user).data,
                'role': user.actor_role,
                'access': str(refresh.access_token),
                'refresh': str(refresh),
            },
            status=status.HTTP_201_CREATED,
        )


class UserProfileView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return api_response('Profile retrieved successfully', UserSerializer(request.user).data)

    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response('Profile updated successfully', serializer.data)


class LogoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        # A freshly claimed Sales lead has to be followed up before its owner leaves
        from inquiries.services import AssignmentService
        AssignmentService.ensure_no_pending_first_follow_up(request.user)
        return api_response('Successfully logged out')


class UserFilter(filters.FilterSet):
    role = filters.ChoiceFilter(choices=CustomUser.ROLE_CHOICES)
    is_active = filters.BooleanFilter()

    class Meta:
        model = CustomUser
        fields = ['role', 'is_active']


class UserViewSet(viewsets.ModelViewSet):
    """
    User directory.

    Admins manage every account. Presales and Sales users only list the active
    members of their own role, which is what they need to pick reassignment
    targets.
    """
    queryset = CustomUser.objects.all()
    pagination_class = OptionalPagination
    filter_backends = [filters.DjangoFilterBackend, OrderingFilter, SearchFilter]
    filterset_class = UserFilter
    ordering_fields = ['username', 'email', 'date_joined']
    ordering = ['-date_joined']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    list_message = 'Users retrieved successfully'
    list_key = 'users'

    def get_permissions(self):
        if self.action == 'list':
            return [IsStaffRole()]
        return [IsAdmin()]

    def get_serializer_class(self):
        if self.request.user.is_authenticated and self.request.user.is_admin():
            return UserManagementSerializer
        return UserListSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user
        if user.is_presales():
            queryset = queryset.filter(role='presales', is_active=True)
        elif user.is_sales():
            queryset = queryset.filter(role='sales', is_active=True)
        return queryset

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return api_response(self.list_message, {self.list_key: self.get_serializer(queryset, many=True).data})

    def retrieve(self, request, *args, **kwargs):
        return api_response('User retrieved successfully', self.get_serializer(self.get_object()).data)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"User {user.username} created by {request.user.username} with role {user.role}")
        return api_response('User created successfully', serializer.data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response('User updated successfully', serializer.data)

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.pk == request.user.pk:
            raise ValidationError('You cannot delete your own account')
        user.delete()
        return api_response('User deleted successfully')

    @action(detail=True, methods=['patch', 'post'])
    def toggle_status(self, request, pk=None):
        """Activate or deactivate an account"""
        user = self.get_object()
        user.is_active = not user.is_active
        user.save(update_fields=['is_active'])
        state = 'activated' if user.is_active else 'deactivated'
        return api_response(f'User {state} successfully', self.get_serializer(user).data)


class OptionSettingsView(APIView):
    permission_classes = [IsAdminOrReadOnly]

    def get(self, request):
        options = OptionSettings.load()
        return api_response('Options loaded', OptionSettingsSerializer(options).data)

    def put(self, request):
        options = OptionSettings.load()
        serializer = OptionSettingsSerializer(options, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response('Options updated', serializer.data)

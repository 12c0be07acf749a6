from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from core.logger_service import get_logger
from .models import CustomUser, OptionSettings

logger = get_logger()


class UserSummarySerializer(serializers.ModelSerializer):
    """Identity block embedded in inquiries and follow-ups."""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = CustomUser
        fields = ['id', 'name', 'email']


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()
    actor_role = serializers.CharField(read_only=True)

    class Meta:
        model = CustomUser
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'full_name',
            'role',
            'actor_role',
            'phone_number',
            'address',
            'is_active',
            'is_superuser',
            'last_login',
            'date_joined',
        ]
        read_only_fields = ['role', 'is_active', 'is_superuser', 'last_login', 'date_joined']

    def get_full_name(self, obj):
        return obj.display_name


class UserManagementSerializer(serializers.ModelSerializer):
    password = serializers.CharField(
        write_only=True, required=False, validators=[validate_password], style={'input_type': 'password'}
    )

    class Meta:
        model = CustomUser
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'password',
            'role', 'phone_number', 'address', 'is_active', 'date_joined', 'last_login',
        ]
        read_only_fields = ['date_joined', 'last_login']

    def validate(self, attrs):
        if self.instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Password is required'})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return CustomUser.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class UserListSerializer(serializers.ModelSerializer):
    """Restricted view of a user for presales/sales pickers."""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = CustomUser
        fields = ['id', 'name', 'email', 'role', 'is_active']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=True, validators=[validate_password])
    password2 = serializers.CharField(write_only=True, required=True)
    email = serializers.EmailField(required=True)
    role = serializers.ChoiceField(choices=CustomUser.ROLE_CHOICES, required=False, default='user')

    class Meta:
        model = CustomUser
        fields = ('id', 'username', 'password', 'password2', 'email', 'first_name', 'last_name',
                  'role', 'phone_number')
        read_only_fields = ('id',)

    def validate_email(self, value):
        value = value.strip().lower()
        if CustomUser.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('User already exists with this email')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password2']:
            raise serializers.ValidationError({"password": "Password fields didn't match."})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password2')
        return CustomUser.objects.create_user(**validated_data)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        user = self.user

        data['role'] = user.actor_role
        data['user'] = {
            'id': user.id,
            'email': user.email,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'username': user.username,
        }
        return data


class LeadStageSerializer(serializers.Serializer):
    label = serializers.CharField(max_length=100)
    sub_stages = serializers.ListField(child=serializers.CharField(max_length=200), required=False, default=list)


class OptionSettingsSerializer(serializers.ModelSerializer):
    lead_stages = LeadStageSerializer(many=True, required=False)
    courses = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    locations = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    statuses = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)

    class Meta:
        model = OptionSettings
        fields = ['courses', 'locations', 'statuses', 'lead_stages', 'updated_at']
        read_only_fields = ['updated_at']

    @staticmethod
    def _clean_values(values):
        return [value.strip() for value in values if value and value.strip()]

    def validate_courses(self, value):
        return self._clean_values(value)

    def validate_locations(self, value):
        return self._clean_values(value)

    def validate_statuses(self, value):
        return self._clean_values(value)

    def validate_lead_stages(self, value):
        return OptionSettings.normalize_lead_stages(value)

    def update(self, instance, validated_data):
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        logger.info(f"Option settings updated: {sorted(validated_data)}")
        return instance

from rest_framework import serializers

from core.models import OptionSettings
from core.serializers import UserSummarySerializer
from .admission import admission_date, is_admitted
from .models import FollowUp, Inquiry, phone_validator


class FollowUpSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = FollowUp
        fields = [
            'id', 'type', 'status', 'title', 'completed_date', 'duration', 'outcome',
            'next_follow_up_date', 'inquiry_status', 'lead_stage', 'sub_stage', 'message',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class FollowUpWriteSerializer(serializers.ModelSerializer):
    """Payload of a new or edited follow-up; sub-stages are checked against the catalog."""

    class Meta:
        model = FollowUp
        fields = [
            'type', 'status', 'title', 'completed_date', 'duration', 'outcome',
            'next_follow_up_date', 'inquiry_status', 'lead_stage', 'sub_stage', 'message',
        ]

    def validate(self, attrs):
        lead_stage = attrs.get('lead_stage')
        sub_stage = attrs.get('sub_stage')
        if sub_stage and not lead_stage:
            if self.instance is None or not self.instance.lead_stage:
                raise serializers.ValidationError({'lead_stage': ['Lead stage is required with a sub-stage']})
            lead_stage = self.instance.lead_stage
        if lead_stage:
            options = OptionSettings.load()
            if lead_stage not in options.stage_labels():
                raise serializers.ValidationError({'lead_stage': [f'Invalid lead stage: {lead_stage}']})
            if sub_stage and sub_stage not in options.sub_stages_for(lead_stage):
                raise serializers.ValidationError(
                    {'sub_stage': [f'Invalid sub-stage "{sub_stage}" for lead stage {lead_stage}']}
                )
        return attrs


class InquiryListSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    forwarded_by = UserSummarySerializer(read_only=True)
    is_admitted = serializers.SerializerMethodField()

    class Meta:
        model = Inquiry
        fields = [
            'id', 'name', 'email', 'phone', 'city', 'education', 'course',
            'preferred_location', 'medium', 'message', 'status', 'department',
            'assignment_status', 'assigned_to', 'forwarded_by', 'created_by',
            'pending_first_follow_up', 'is_admitted', 'created_at', 'updated_at', 'version',
        ]
        read_only_fields = fields

    def get_is_admitted(self, obj):
        if hasattr(obj, 'is_admitted'):
            return obj.is_admitted
        return is_admitted(obj.follow_ups.all())


class InquirySerializer(InquiryListSerializer):
    """Inquiry with its follow-up history."""
    follow_ups = FollowUpSerializer(many=True, read_only=True)

    class Meta(InquiryListSerializer.Meta):
        fields = InquiryListSerializer.Meta.fields + ['follow_ups']
        read_only_fields = fields


class AdmittedInquirySerializer(InquiryListSerializer):
    admission_date = serializers.SerializerMethodField()

    class Meta(InquiryListSerializer.Meta):
        fields = InquiryListSerializer.Meta.fields + ['admission_date']
        read_only_fields = fields

    def get_admission_date(self, obj):
        value = getattr(obj, 'admission_date', None)
        if value is None:
            value = admission_date(obj.follow_ups.all())
        return serializers.DateTimeField().to_representation(value) if value else None


class InquiryWriteSerializer(serializers.ModelSerializer):
    """
    Lead facts accepted on create and update.

    Course, location and status must belong to the configured catalog.
    Department, ownership and assignment status are not writable here.
    """
    phone = serializers.CharField(max_length=20, validators=[phone_validator])
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = Inquiry
        fields = [
            'name', 'email', 'phone', 'city', 'education', 'course',
            'preferred_location', 'medium', 'message', 'status',
        ]

    def validate_name(self, value):
        return value.strip()

    def validate_email(self, value):
        if not value:
            return None
        return value.strip().lower()

    def validate_phone(self, value):
        return value.strip()

    def validate(self, attrs):
        options = OptionSettings.load()
        errors = {}
        if 'course' in attrs and attrs['course'] not in options.courses:
            errors['course'] = [f'Invalid course: {attrs["course"]}']
        if 'preferred_location' in attrs and attrs['preferred_location'] not in options.locations:
            errors['preferred_location'] = [f'Invalid location: {attrs["preferred_location"]}']
        if 'status' in attrs and attrs['status'] not in options.statuses:
            errors['status'] = [f'Invalid status: {attrs["status"]}']
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class AssignSerializer(serializers.Serializer):
    assigned_to = serializers.IntegerField(min_value=1)


class ReassignSerializer(serializers.Serializer):
    target_user_id = serializers.IntegerField(min_value=1)


class MyFollowUpSerializer(FollowUpSerializer):
    inquiry = serializers.SerializerMethodField()

    class Meta(FollowUpSerializer.Meta):
        fields = FollowUpSerializer.Meta.fields + ['inquiry']
        read_only_fields = fields

    def get_inquiry(self, obj):
        inquiry = obj.inquiry
        return {
            'id': inquiry.pk,
            'name': inquiry.name,
            'email': inquiry.email,
            'phone': inquiry.phone,
            'city': inquiry.city,
            'course': inquiry.course,
            'preferred_location': inquiry.preferred_location,
            'status': inquiry.status,
            'department': inquiry.department,
            'assigned_to': UserSummarySerializer(inquiry.assigned_to).data if inquiry.assigned_to else None,
            'created_by': UserSummarySerializer(inquiry.created_by).data if inquiry.created_by else None,
        }

"""
Request serializers for the intake API.
"""
from rest_framework import serializers

from submissions.models import Submission


class ConsentSerializer(serializers.Serializer):
    consented = serializers.BooleanField()
    textVersion = serializers.CharField(max_length=100)
    timestamp = serializers.DateTimeField()


class IntakeSerializer(serializers.Serializer):
    """
    New-lead payload.

    Exactly one addressing scheme is accepted: `schoolId`/`campusId`
    (legacy) or `accountId`/`locationId`. The site id is optional in both.
    """

    firstName = serializers.CharField(max_length=200)
    lastName = serializers.CharField(max_length=200)
    email = serializers.EmailField(max_length=254)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)

    schoolId = serializers.CharField(max_length=64, required=False)
    campusId = serializers.CharField(max_length=64, required=False, allow_null=True)
    accountId = serializers.CharField(max_length=64, required=False)
    locationId = serializers.CharField(max_length=64, required=False, allow_null=True)
    programId = serializers.CharField(max_length=64)

    answers = serializers.DictField(required=False, default=dict)
    metadata = serializers.DictField(required=False, default=dict)
    consent = ConsentSerializer()
    honeypot = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        legacy = attrs.get('schoolId') is not None or attrs.get('campusId') is not None
        current = attrs.get('accountId') is not None or attrs.get('locationId') is not None

        if legacy and current:
            raise serializers.ValidationError('Use either schoolId/campusId or accountId/locationId, not both')
        if legacy and not attrs.get('schoolId'):
            raise serializers.ValidationError({'schoolId': 'This field is required.'})
        if not legacy and not attrs.get('accountId'):
            raise serializers.ValidationError({'accountId': 'This field is required.'})

        return attrs

    def to_intake_data(self) -> dict:
        """Validated data in the shape `submit_lead` expects."""
        data = self.validated_data
        if data.get('schoolId') is not None:
            scheme = Submission.Scheme.LEGACY
            owner_id, site_id = data['schoolId'], data.get('campusId')
        else:
            scheme = Submission.Scheme.ACCOUNT
            owner_id, site_id = data['accountId'], data.get('locationId')

        return {
            'scheme': scheme,
            'owner_id': owner_id,
            'site_id': site_id or None,
            'program_id': data['programId'],
            'first_name': data['firstName'],
            'last_name': data['lastName'],
            'email': data['email'],
            'phone': data.get('phone'),
            'answers': data.get('answers') or {},
            'consent': {
                'consented': data['consent']['consented'],
                'text_version': data['consent']['textVersion'],
                'timestamp': data['consent']['timestamp'],
            },
        }


class StepSerializer(serializers.Serializer):
    """Partial-answer step update for an existing submission."""

    submissionId = serializers.UUIDField()
    stepIndex = serializers.IntegerField(min_value=1)
    answers = serializers.DictField(allow_empty=False)

"""Student and bulk-upload request serializers."""
from rest_framework import serializers

from .models import Student

__all__ = ['StudentSerializer', 'BulkPreviewRequestSerializer', 'BulkCommitRequestSerializer']


class StudentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = '__all__'
        read_only_fields = ['id', 'created_at', 'updated_at']


class BulkPreviewRequestSerializer(serializers.Serializer):
    file = serializers.FileField()
    formId = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    collegeId = serializers.IntegerField(required=False, allow_null=True)
    autoGenerateAdmission = serializers.BooleanField(required=False, default=False)


class _CommitRecordSerializer(serializers.Serializer):
    rowNumber = serializers.IntegerField(min_value=1)
    sanitizedData = serializers.DictField(required=False, default=dict)


class BulkCommitRequestSerializer(serializers.Serializer):
    records = _CommitRecordSerializer(many=True, allow_empty=False)
    collegeId = serializers.IntegerField(required=False, allow_null=True)
    previewToken = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    autoGenerateAdmission = serializers.BooleanField(required=False, default=False)

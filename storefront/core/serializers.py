from rest_framework import serializers

from .models import User, Address, AuditLog


class AddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = Address
        fields = ['name', 'phone', 'address', 'district', 'province', 'postal_code', 'is_default']


class UserSerializer(serializers.ModelSerializer):
    addresses = AddressSerializer(many=True, read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'phone', 'role', 'addresses', 'created_at', 'updated_at']
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in admin order listings"""
    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'phone']


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, trim_whitespace=False)
    name = serializers.CharField(max_length=200)


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)


class AuthPayloadSerializer(serializers.Serializer):
    token = serializers.CharField()
    user = UserSerializer()


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']


class ImageUploadSerializer(serializers.Serializer):
    image = serializers.ImageField()

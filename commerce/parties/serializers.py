from rest_framework import serializers
from .models import CustomerProfile, CustomerAddress


class CustomerProfileSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    first_name = serializers.CharField(source='user.first_name', required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(source='user.last_name', required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(source='user.phone', required=False, allow_blank=True, allow_null=True, max_length=20)

    class Meta:
        model = CustomerProfile
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'phone',
            'customer_type', 'company_name', 'tax_id', 'company_email', 'company_phone',
            'loyalty_points', 'created_at', 'updated_at'
        ]
        read_only_fields = ['loyalty_points', 'created_at', 'updated_at']

    def validate(self, attrs):
        customer_type = attrs.get('customer_type', self.instance.customer_type if self.instance else 'PERSONAL')
        company_name = attrs.get('company_name', self.instance.company_name if self.instance else '')
        if customer_type == 'BUSINESS' and not (company_name or '').strip():
            raise serializers.ValidationError({'company_name': 'Company name is required for business customers'})
        return attrs

    def update(self, instance, validated_data):
        user_data = validated_data.pop('user', {})
        if user_data:
            for field, value in user_data.items():
                setattr(instance.user, field, value)
            instance.user.save(update_fields=list(user_data.keys()) + ['updated_at'])
        return super().update(instance, validated_data)


class CustomerAddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomerAddress
        fields = [
            'id', 'kind', 'label', 'recipient_name', 'phone', 'line1', 'line2', 'ward', 'district',
            'city', 'province', 'postal_code', 'country', 'is_default', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']


class CustomerListSerializer(serializers.ModelSerializer):
    """Admin customer list row; order aggregates are annotated by the view"""
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    name = serializers.CharField(source='user.display_name', read_only=True)
    phone = serializers.CharField(source='user.phone', read_only=True)
    order_count = serializers.IntegerField(read_only=True)
    total_spent = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = CustomerProfile
        fields = [
            'id', 'user', 'username', 'email', 'name', 'phone', 'customer_type', 'company_name',
            'tax_id', 'loyalty_points', 'order_count', 'total_spent', 'created_at'
        ]

from django import forms
from datetime import date, timedelta
from decimal import Decimal
import re
import logging

logger = logging.getLogger(__name__)

COUPON_CODE_RE = re.compile(r'^[A-Z0-9]+$')

COUPON_TYPE_CHOICES = [
    ('percentage', 'Percentage'),
    ('fixed', 'Fixed Amount'),
]

DISCOUNT_TYPE_CHOICES = [
    ('percentage', 'Percentage'),
    ('fixed', 'Fixed Amount'),
    ('buy_x_get_y', 'Buy X Get Y'),
    ('bulk', 'Bulk Discount'),
]


def _default_valid_until():
    return date.today() + timedelta(days=30)


def _number(value):
    """Decimal form values go to the backend as JSON numbers."""
    if value is None:
        return 0
    return float(value)


class PromotionFormMixin(forms.Form):
    """Fields shared by coupons and automatic discounts."""

    name = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2})
    )
    minimum_order_amount = forms.DecimalField(
        label="Minimum Order Amount (₹)",
        required=False,
        min_value=Decimal('0'),
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )
    maximum_discount = forms.DecimalField(
        label="Maximum Discount (₹)",
        required=False,
        min_value=Decimal('0'),
        decimal_places=2,
        help_text="0 means no cap.",
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )
    valid_from = forms.DateField(
        initial=date.today,
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'})
    )
    valid_until = forms.DateField(
        initial=_default_valid_until,
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'})
    )
    usage_limit = forms.IntegerField(
        required=False,
        min_value=0,
        help_text="0 means unlimited.",
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    is_active = forms.BooleanField(
        label="Active",
        required=False,
        initial=True,
        widget=forms.CheckboxInput(attrs={'class': 'form-check-input'})
    )

    def clean(self):
        cleaned_data = super().clean()
        valid_from = cleaned_data.get('valid_from')
        valid_until = cleaned_data.get('valid_until')
        if valid_from and valid_until and valid_from > valid_until:
            self.add_error('valid_until', "Valid until must be on or after valid from.")
        return cleaned_data

    def _common_payload(self):
        data = self.cleaned_data
        return {
            'name': data['name'],
            'description': data.get('description') or '',
            'minimumOrderAmount': _number(data.get('minimum_order_amount')),
            'maximumDiscount': _number(data.get('maximum_discount')),
            'validFrom': data['valid_from'].isoformat(),
            'validUntil': data['valid_until'].isoformat(),
            'usageLimit': data.get('usage_limit') or 0,
            'isActive': bool(data.get('is_active')),
        }

    @staticmethod
    def _common_initial(record):
        return {
            'name': record.get('name'),
            'description': record.get('description'),
            'minimum_order_amount': record.get('minimumOrderAmount') or 0,
            'maximum_discount': record.get('maximumDiscount') or 0,
            'valid_from': (record.get('validFrom') or '')[:10] or None,
            'valid_until': (record.get('validUntil') or '')[:10] or None,
            'usage_limit': record.get('usageLimit') or 0,
            'is_active': record.get('isActive', True),
        }


class CouponForm(PromotionFormMixin):
    """
    Coupon create / edit form.

    The code is stored upper-case and must be alphanumeric; a percentage
    coupon cannot exceed 100%.
    """

    field_order = ['code', 'name', 'description', 'discount_type', 'discount_value']

    code = forms.CharField(
        max_length=30,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': 'SAVE10',
            'style': 'text-transform: uppercase;',
        })
    )
    discount_type = forms.ChoiceField(
        choices=COUPON_TYPE_CHOICES,
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    discount_value = forms.DecimalField(
        min_value=Decimal('0.01'),
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )

    def clean_code(self):
        code = self.cleaned_data['code'].strip().upper()
        if not COUPON_CODE_RE.match(code):
            raise forms.ValidationError("Coupon code may only contain letters and numbers.")
        return code

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('discount_type') == 'percentage':
            value = cleaned_data.get('discount_value')
            if value is not None and value > 100:
                self.add_error('discount_value', "Percentage discount cannot exceed 100%.")
        return cleaned_data

    def to_payload(self):
        payload = self._common_payload()
        payload.update({
            'code': self.cleaned_data['code'],
            'discountType': self.cleaned_data['discount_type'],
            'discountValue': _number(self.cleaned_data['discount_value']),
        })
        return payload

    @classmethod
    def initial_from(cls, coupon):
        initial = cls._common_initial(coupon)
        initial.update({
            'code': coupon.get('code'),
            'discount_type': coupon.get('discountType'),
            'discount_value': coupon.get('discountValue'),
        })
        return initial


class DiscountForm(PromotionFormMixin):
    """Automatic discount form; conditions apply to buy_x_get_y and bulk types."""

    field_order = ['name', 'description', 'discount_type', 'value']

    discount_type = forms.ChoiceField(
        label="Type",
        choices=DISCOUNT_TYPE_CHOICES,
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    value = forms.DecimalField(
        required=False,
        min_value=Decimal('0'),
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )
    buy_quantity = forms.IntegerField(
        required=False,
        min_value=1,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    get_quantity = forms.IntegerField(
        required=False,
        min_value=1,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    bulk_threshold = forms.IntegerField(
        required=False,
        min_value=1,
        help_text="Minimum item quantity for the bulk discount.",
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    bulk_discount = forms.DecimalField(
        label="Bulk discount (%)",
        required=False,
        min_value=Decimal('0'),
        max_value=Decimal('100'),
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )

    def clean(self):
        cleaned_data = super().clean()
        discount_type = cleaned_data.get('discount_type')
        value = cleaned_data.get('value')

        if discount_type in ('percentage', 'fixed'):
            if not value or value <= 0:
                self.add_error('value', "Discount value must be greater than zero.")
            elif discount_type == 'percentage' and value > 100:
                self.add_error('value', "Percentage discount cannot exceed 100%.")
        elif discount_type == 'buy_x_get_y':
            if not cleaned_data.get('buy_quantity'):
                self.add_error('buy_quantity', "Buy quantity is required for Buy X Get Y.")
            if not cleaned_data.get('get_quantity'):
                self.add_error('get_quantity', "Get quantity is required for Buy X Get Y.")
        elif discount_type == 'bulk':
            if not cleaned_data.get('bulk_threshold'):
                self.add_error('bulk_threshold', "Bulk threshold is required for bulk discounts.")
            if not cleaned_data.get('bulk_discount'):
                self.add_error('bulk_discount', "Bulk discount is required for bulk discounts.")
        return cleaned_data

    def to_payload(self):
        data = self.cleaned_data
        payload = self._common_payload()
        payload.update({
            'type': data['discount_type'],
            'value': _number(data.get('value')),
        })
        if data['discount_type'] == 'buy_x_get_y':
            payload['conditions'] = {
                'buyQuantity': data['buy_quantity'],
                'getQuantity': data['get_quantity'],
            }
        elif data['discount_type'] == 'bulk':
            payload['conditions'] = {
                'bulkThreshold': data['bulk_threshold'],
                'bulkDiscount': _number(data['bulk_discount']),
            }
        return payload

    @classmethod
    def initial_from(cls, discount):
        conditions = discount.get('conditions') or {}
        initial = cls._common_initial(discount)
        initial.update({
            'discount_type': discount.get('type'),
            'value': discount.get('value'),
            'buy_quantity': conditions.get('buyQuantity'),
            'get_quantity': conditions.get('getQuantity'),
            'bulk_threshold': conditions.get('bulkThreshold'),
            'bulk_discount': conditions.get('bulkDiscount'),
        })
        return initial

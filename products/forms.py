from django import forms
from decimal import Decimal

IMAGE_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/webp', 'image/gif')
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def category_id(value):
    """Products carry either a populated category or its bare ID."""
    if isinstance(value, dict):
        return value.get('_id')
    return value


class ProductForm(forms.Form):
    name = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3})
    )
    category = forms.ChoiceField(
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    price = forms.DecimalField(
        label="Price (₹)",
        min_value=Decimal('0'),
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )
    stock = forms.IntegerField(
        min_value=0,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    image = forms.FileField(
        required=False,
        help_text="Uploaded to the backend image store when the form is saved.",
        widget=forms.ClearableFileInput(attrs={'class': 'form-control', 'accept': 'image/*'})
    )
    image_url = forms.CharField(
        required=False,
        widget=forms.HiddenInput()
    )

    def __init__(self, *args, categories=None, **kwargs):
        super().__init__(*args, **kwargs)
        choices = [('', 'Select category')]
        for category in categories or []:
            choices.append((category.get('_id'), category.get('name') or category.get('_id')))
        self.fields['category'].choices = choices

    def clean_image(self):
        image = self.cleaned_data.get('image')
        if image:
            if getattr(image, 'content_type', None) not in IMAGE_CONTENT_TYPES:
                raise forms.ValidationError("Upload a JPEG, PNG, WebP or GIF image.")
            if image.size > MAX_IMAGE_BYTES:
                raise forms.ValidationError("Images must be 5 MB or smaller.")
        return image

    def to_payload(self, image_url=None):
        data = self.cleaned_data
        return {
            'name': data['name'],
            'description': data['description'],
            'category': data['category'],
            'price': float(data['price']),
            'stock': data['stock'],
            'imageUrl': image_url if image_url is not None else data.get('image_url') or '',
        }

    @staticmethod
    def initial_from(product):
        return {
            'name': product.get('name'),
            'description': product.get('description'),
            'category': category_id(product.get('category')),
            'price': product.get('price'),
            'stock': product.get('stock'),
            'image_url': product.get('imageUrl') or '',
        }


class StockForm(forms.Form):
    stock = forms.IntegerField(
        label="Current stock",
        min_value=0,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    low_stock_threshold = forms.IntegerField(
        label="Low stock threshold",
        min_value=0,
        initial=10,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )

    def to_payload(self):
        return {
            'stock': self.cleaned_data['stock'],
            'lowStockThreshold': self.cleaned_data['low_stock_threshold'],
        }


class CategoryForm(forms.Form):
    name = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2})
    )
    is_active = forms.BooleanField(
        label="Active",
        required=False,
        initial=True,
        widget=forms.CheckboxInput(attrs={'class': 'form-check-input'})
    )

    def to_payload(self):
        data = self.cleaned_data
        return {
            'name': data['name'].strip(),
            'description': data.get('description') or '',
            'isActive': bool(data.get('is_active')),
        }

    @staticmethod
    def initial_from(category):
        return {
            'name': category.get('name'),
            'description': category.get('description'),
            'is_active': category.get('isActive', True),
        }

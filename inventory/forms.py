from django import forms
from decimal import Decimal, InvalidOperation

RAW_MATERIAL_CATEGORIES = [
    ('vegetables', 'Vegetables'),
    ('spices', 'Spices'),
    ('grains', 'Grains'),
    ('dairy', 'Dairy'),
    ('meat', 'Meat'),
    ('pantry', 'Pantry'),
    ('beverages', 'Beverages'),
    ('other', 'Other'),
]

RECIPE_CATEGORIES = [
    ('appetizer', 'Appetizer'),
    ('main-course', 'Main Course'),
    ('dessert', 'Dessert'),
    ('beverage', 'Beverage'),
    ('snack', 'Snack'),
]

DIFFICULTY_CHOICES = [
    ('easy', 'Easy'),
    ('medium', 'Medium'),
    ('hard', 'Hard'),
]


class RawMaterialForm(forms.Form):
    name = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2})
    )
    category = forms.ChoiceField(
        choices=RAW_MATERIAL_CATEGORIES,
        initial='vegetables',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    unit = forms.CharField(
        max_length=20,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'kg, g, l, pcs...'})
    )
    cost_per_unit = forms.DecimalField(
        label="Cost per unit (₹)",
        min_value=Decimal('0'),
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )
    supplier = forms.CharField(
        max_length=100,
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    minimum_stock = forms.DecimalField(
        min_value=Decimal('0'),
        decimal_places=3,
        initial=0,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.001'})
    )
    current_stock = forms.DecimalField(
        min_value=Decimal('0'),
        decimal_places=3,
        initial=0,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.001'})
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
            'name': data['name'],
            'description': data.get('description') or '',
            'category': data['category'],
            'unit': data['unit'],
            'costPerUnit': float(data['cost_per_unit']),
            'supplier': data.get('supplier') or '',
            'minimumStock': float(data['minimum_stock']),
            'currentStock': float(data['current_stock']),
            'isActive': bool(data.get('is_active')),
        }

    @staticmethod
    def initial_from(material):
        return {
            'name': material.get('name'),
            'description': material.get('description'),
            'category': material.get('category'),
            'unit': material.get('unit'),
            'cost_per_unit': material.get('costPerUnit'),
            'supplier': material.get('supplier'),
            'minimum_stock': material.get('minimumStock'),
            'current_stock': material.get('currentStock'),
            'is_active': material.get('isActive', True),
        }


class RecipeForm(forms.Form):
    """Recipe header fields; ingredient rows are posted as parallel lists."""

    name = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2})
    )
    category = forms.ChoiceField(
        choices=RECIPE_CATEGORIES,
        initial='main-course',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    serves = forms.IntegerField(
        min_value=1,
        initial=1,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    prep_time_min = forms.IntegerField(
        label="Prep time (min)",
        min_value=0,
        initial=0,
        required=False,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    cook_time_min = forms.IntegerField(
        label="Cook time (min)",
        min_value=0,
        initial=0,
        required=False,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    difficulty = forms.ChoiceField(
        choices=DIFFICULTY_CHOICES,
        initial='medium',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    cuisine = forms.CharField(
        max_length=50,
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )

    def to_payload(self, ingredients):
        data = self.cleaned_data
        prep = data.get('prep_time_min') or 0
        cook = data.get('cook_time_min') or 0
        return {
            'name': data['name'],
            'description': data.get('description') or '',
            'category': data['category'],
            'serves': data['serves'],
            'prepTimeMin': prep,
            'cookTimeMin': cook,
            'totalTimeMin': prep + cook,
            'difficulty': data['difficulty'],
            'cuisine': data.get('cuisine') or '',
            'ingredients': ingredients,
        }


def parse_ingredient_rows(post):
    """
    Collect ingredient rows from parallel ``rawMaterial`` / ``quantity`` /
    ``unit`` / ``notes`` lists.

    Rows without a raw material are dropped. Returns (ingredients, error).
    """
    materials = post.getlist('rawMaterial')
    quantities = post.getlist('quantity')
    units = post.getlist('unit')
    notes = post.getlist('notes')

    ingredients = []
    for index, material in enumerate(materials):
        if not material:
            continue
        raw_quantity = quantities[index] if index < len(quantities) else ''
        try:
            quantity = Decimal(raw_quantity)
        except (InvalidOperation, ValueError):
            return None, "Each ingredient needs a numeric quantity."
        if not quantity.is_finite() or quantity <= 0:
            return None, "Ingredient quantities must be greater than zero."
        unit = (units[index] if index < len(units) else '').strip()
        if not unit:
            return None, "Each ingredient needs a unit."
        ingredients.append({
            'rawMaterial': material,
            'quantity': float(quantity),
            'unit': unit,
            'notes': (notes[index] if index < len(notes) else '').strip(),
        })

    if not ingredients:
        return None, "Add at least one ingredient."
    return ingredients, None

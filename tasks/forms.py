from django import forms
import logging

logger = logging.getLogger(__name__)

TASK_FOR_CHOICES = [
    ('hotel', 'Hotel'),
    ('restaurant', 'Restaurant'),
    ('maintenance', 'Maintenance'),
    ('cleaning', 'Cleaning'),
    ('security', 'Security'),
    ('guest_services', 'Guest Services'),
    ('other', 'Other'),
]

STATUS_CHOICES = [
    ('pending', 'Pending'),
    ('in_progress', 'In Progress'),
    ('completed', 'Completed'),
    ('cancelled', 'Cancelled'),
    ('on_hold', 'On Hold'),
]

PRIORITY_CHOICES = [
    ('low', 'Low'),
    ('medium', 'Medium'),
    ('high', 'High'),
    ('urgent', 'Urgent'),
]

CHECKLIST_TYPE_CHOICES = [
    ('daily', 'Daily'),
    ('weekly', 'Weekly'),
    ('monthly', 'Monthly'),
    ('custom', 'Custom'),
]

FREQUENCY_CHOICES = [
    ('daily', 'Daily'),
    ('weekly', 'Weekly'),
    ('monthly', 'Monthly'),
]


def split_tags(raw):
    """'a, b,,c ' -> ['a', 'b', 'c']"""
    return [tag.strip() for tag in (raw or '').split(',') if tag.strip()]


def split_lines(raw):
    return [line.strip() for line in (raw or '').splitlines() if line.strip()]


def _ref(value):
    """Populated references come back as objects; forms work with the ID."""
    if isinstance(value, dict):
        return value.get('_id') or ''
    return value or ''


class TaskForm(forms.Form):
    """A single task; owner choices are filled from the backend user list."""

    title = forms.CharField(
        max_length=200,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3})
    )
    task_owner = forms.ChoiceField(
        label="Owner",
        choices=[],
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    task_for = forms.ChoiceField(
        label="Task For",
        choices=TASK_FOR_CHOICES,
        initial='restaurant',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    checklist_type = forms.ChoiceField(
        choices=CHECKLIST_TYPE_CHOICES,
        initial='daily',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    priority = forms.ChoiceField(
        choices=PRIORITY_CHOICES,
        initial='medium',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    status = forms.ChoiceField(
        choices=STATUS_CHOICES,
        initial='pending',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    due_date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'})
    )
    procedure = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3})
    )
    location = forms.CharField(
        required=False,
        max_length=200,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    estimated_duration = forms.IntegerField(
        label="Estimated Duration (minutes)",
        required=False,
        min_value=0,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    tags = forms.CharField(
        required=False,
        help_text="Comma separated.",
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    is_recurring = forms.BooleanField(
        label="Recurring",
        required=False,
        widget=forms.CheckboxInput(attrs={'class': 'form-check-input'})
    )
    frequency = forms.ChoiceField(
        choices=FREQUENCY_CHOICES,
        required=False,
        initial='daily',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    interval = forms.IntegerField(
        required=False,
        min_value=1,
        initial=1,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    template = forms.CharField(required=False, widget=forms.HiddenInput())

    def __init__(self, *args, users=None, **kwargs):
        super().__init__(*args, **kwargs)
        choices = [('', 'Select owner')]
        for user in users or []:
            name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
            choices.append((user.get('_id'), name or user.get('email') or user.get('_id')))
        self.fields['task_owner'].choices = choices

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('is_recurring'):
            if not cleaned_data.get('frequency'):
                self.add_error('frequency', "Select how often the task repeats.")
            if not cleaned_data.get('interval'):
                self.add_error('interval', "Interval must be at least 1.")
        return cleaned_data

    def to_payload(self):
        data = self.cleaned_data
        payload = {
            'title': data['title'].strip(),
            'description': data['description'].strip(),
            'taskOwner': data['task_owner'],
            'taskFor': data['task_for'],
            'checklistType': data['checklist_type'],
            'priority': data['priority'],
            'status': data['status'],
            'procedure': data.get('procedure') or '',
            'location': data.get('location') or '',
            'tags': split_tags(data.get('tags')),
            'isRecurring': bool(data.get('is_recurring')),
        }
        if data.get('due_date'):
            payload['dueDate'] = data['due_date'].isoformat()
        if data.get('estimated_duration') is not None:
            payload['estimatedDuration'] = data['estimated_duration']
        if payload['isRecurring']:
            payload['recurringPattern'] = {
                'frequency': data['frequency'],
                'interval': data['interval'],
            }
        if data.get('template'):
            payload['template'] = data['template']
        return payload

    @staticmethod
    def initial_from(task):
        pattern = task.get('recurringPattern') or {}
        return {
            'title': task.get('title', ''),
            'description': task.get('description', ''),
            'task_owner': _ref(task.get('taskOwner')),
            'task_for': task.get('taskFor', 'restaurant'),
            'checklist_type': task.get('checklistType', 'daily'),
            'priority': task.get('priority', 'medium'),
            'status': task.get('status', 'pending'),
            'due_date': (task.get('dueDate') or '')[:10] or None,
            'procedure': task.get('procedure', ''),
            'location': task.get('location', ''),
            'estimated_duration': task.get('estimatedDuration'),
            'tags': ', '.join(task.get('tags') or []),
            'is_recurring': bool(task.get('isRecurring')),
            'frequency': pattern.get('frequency', 'daily'),
            'interval': pattern.get('interval', 1),
            'template': _ref(task.get('template')),
        }

    @staticmethod
    def initial_from_template(template):
        """Pre-fill a new task from a task template."""
        return {
            'title': template.get('name', ''),
            'description': template.get('description', ''),
            'task_for': template.get('taskFor', 'restaurant'),
            'checklist_type': template.get('checklistType', 'daily'),
            'priority': template.get('priority', 'medium'),
            'procedure': template.get('procedure', ''),
            'location': template.get('location', ''),
            'estimated_duration': template.get('estimatedDuration'),
            'tags': ', '.join(template.get('tags') or []),
            'template': template.get('_id', ''),
        }


class TaskTemplateForm(forms.Form):
    name = forms.CharField(
        max_length=200,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    description = forms.CharField(
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3})
    )
    task_for = forms.ChoiceField(
        label="Task For",
        choices=TASK_FOR_CHOICES,
        initial='restaurant',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    checklist_type = forms.ChoiceField(
        choices=CHECKLIST_TYPE_CHOICES,
        initial='daily',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    priority = forms.ChoiceField(
        choices=PRIORITY_CHOICES,
        initial='medium',
        widget=forms.Select(attrs={'class': 'form-select'})
    )
    category = forms.CharField(
        required=False,
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    procedure = forms.CharField(
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3})
    )
    instructions = forms.CharField(
        required=False,
        help_text="One instruction per line.",
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 4})
    )
    estimated_duration = forms.IntegerField(
        label="Estimated Duration (minutes)",
        required=False,
        min_value=0,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    location = forms.CharField(
        required=False,
        max_length=200,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    tags = forms.CharField(
        required=False,
        help_text="Comma separated.",
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    required_skills = forms.CharField(
        required=False,
        help_text="Comma separated.",
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    equipment = forms.CharField(
        required=False,
        help_text="Comma separated.",
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    safety_notes = forms.CharField(
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
        payload = {
            'name': data['name'].strip(),
            'description': data['description'].strip(),
            'taskFor': data['task_for'],
            'checklistType': data['checklist_type'],
            'priority': data['priority'],
            'category': data.get('category') or '',
            'procedure': data['procedure'].strip(),
            'instructions': split_lines(data.get('instructions')),
            'location': data.get('location') or '',
            'tags': split_tags(data.get('tags')),
            'requiredSkills': split_tags(data.get('required_skills')),
            'equipment': split_tags(data.get('equipment')),
            'safetyNotes': data.get('safety_notes') or '',
            'isActive': bool(data.get('is_active')),
        }
        if data.get('estimated_duration') is not None:
            payload['estimatedDuration'] = data['estimated_duration']
        return payload

    @staticmethod
    def initial_from(template):
        return {
            'name': template.get('name', ''),
            'description': template.get('description', ''),
            'task_for': template.get('taskFor', 'restaurant'),
            'checklist_type': template.get('checklistType', 'daily'),
            'priority': template.get('priority', 'medium'),
            'category': template.get('category', ''),
            'procedure': template.get('procedure', ''),
            'instructions': '\n'.join(template.get('instructions') or []),
            'estimated_duration': template.get('estimatedDuration'),
            'location': template.get('location', ''),
            'tags': ', '.join(template.get('tags') or []),
            'required_skills': ', '.join(template.get('requiredSkills') or []),
            'equipment': ', '.join(template.get('equipment') or []),
            'safety_notes': template.get('safetyNotes', ''),
            'is_active': template.get('isActive', True),
        }

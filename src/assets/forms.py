"""Forms validating inventory API payloads.

Payload keys follow the API (``school_id``, ``template_id``...). Each form
maps them onto model attributes through ``field_map``. With
``partial=True`` only the keys present in the payload are validated and
applied, which is how PUT/PATCH updates work.
"""

from django import forms
from django.core.validators import URLValidator

from .models import (
    Asset,
    AssetCategory,
    AssetIncident,
    AssetTemplate,
    Classroom,
    School,
)
from .services.images import is_data_url
from .services.permissions import scope_classrooms, scope_schools


class PayloadForm(forms.Form):
    field_map = {}

    def __init__(self, data, *, instance=None, partial=False, user=None):
        super().__init__(data)
        self.instance = instance
        self.partial = partial
        self.user = user
        if partial:
            for name in list(self.fields):
                if name not in data:
                    del self.fields[name]

    def get_value(self, name):
        """Cleaned value if submitted, otherwise the instance's value."""
        if name in self.cleaned_data:
            return self.cleaned_data[name]
        if self.instance is not None:
            return getattr(self.instance, self.field_map.get(name, name))
        return None

    def changes(self) -> dict:
        return {
            self.field_map.get(name, name): value
            for name, value in self.cleaned_data.items()
            if name in self.fields
        }

    def apply(self, instance):
        for attr, value in self.changes().items():
            setattr(instance, attr, value)
        return instance


class SchoolForm(PayloadForm):
    name = forms.CharField(max_length=200)
    address = forms.CharField(required=False)
    description = forms.CharField(required=False)
    logo_url = forms.URLField(max_length=500, required=False)

    def clean_name(self):
        name = self.cleaned_data["name"].strip()
        qs = School.objects.filter(name__iexact=name)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError("A school with this name exists.")
        return name


class ClassroomForm(PayloadForm):
    field_map = {"school_id": "school"}

    school_id = forms.ModelChoiceField(queryset=School.objects.none())
    name = forms.CharField(max_length=100)
    code = forms.CharField(max_length=30, required=False)
    capacity = forms.IntegerField(min_value=0, required=False)

    def __init__(self, data, **kwargs):
        super().__init__(data, **kwargs)
        if "school_id" in self.fields:
            self.fields["school_id"].queryset = scope_schools(self.user)

    def clean(self):
        cleaned = super().clean()
        school = self.get_value("school_id")
        name = self.get_value("name")
        if school is None or not name:
            return cleaned
        qs = Classroom.objects.filter(school=school, name__iexact=name.strip())
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            self.add_error(
                "name" if "name" in self.fields else None,
                "This school already has a classroom with this name.",
            )
        return cleaned


class AssetCategoryForm(PayloadForm):
    name = forms.CharField(max_length=100)
    description = forms.CharField(required=False)

    def clean_name(self):
        name = self.cleaned_data["name"].strip()
        qs = AssetCategory.objects.filter(name__iexact=name)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError("A category with this name exists.")
        return name


class AssetTemplateForm(PayloadForm):
    field_map = {"category_id": "category"}

    category_id = forms.ModelChoiceField(queryset=AssetCategory.objects.all())
    name = forms.CharField(max_length=200)
    description = forms.CharField(required=False)
    manufacturer = forms.CharField(max_length=100, required=False)
    model_number = forms.CharField(max_length=100, required=False)

    def clean(self):
        cleaned = super().clean()
        category = self.get_value("category_id")
        name = self.get_value("name")
        if category is None or not name:
            return cleaned
        qs = AssetTemplate.objects.filter(
            category=category, name__iexact=name.strip()
        )
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            self.add_error(
                "name" if "name" in self.fields else None,
                "This category already has a template with this name.",
            )
        return cleaned


class AssetForm(PayloadForm):
    field_map = {"template_id": "template", "classroom_id": "classroom"}

    template_id = forms.ModelChoiceField(
        queryset=AssetTemplate.objects.all(), required=False
    )
    classroom_id = forms.ModelChoiceField(
        queryset=Classroom.objects.none(), required=False
    )
    serial_number = forms.CharField(max_length=100, required=False)
    purchase_date = forms.DateField(required=False)
    value_estimate = forms.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False
    )
    image_url = forms.CharField(max_length=500, required=False)
    status = forms.ChoiceField(choices=Asset.STATUS_CHOICES, required=False)

    def __init__(self, data, **kwargs):
        super().__init__(data, **kwargs)
        if "classroom_id" in self.fields:
            self.fields["classroom_id"].queryset = scope_classrooms(self.user)

    def clean_classroom_id(self):
        classroom = self.cleaned_data["classroom_id"]
        # Assets without a classroom are only visible to super admins
        if classroom is None and not (self.user and self.user.is_super_admin):
            raise forms.ValidationError("A classroom is required.")
        return classroom

    def clean_status(self):
        return self.cleaned_data["status"] or "available"


class AssetImageForm(PayloadForm):
    image_url = forms.CharField()

    def clean_image_url(self):
        value = self.cleaned_data["image_url"].strip()
        if is_data_url(value):
            return value
        URLValidator(message="Enter a valid URL or image data URL.")(value)
        if len(value) > 500:
            raise forms.ValidationError("URL is too long.")
        return value


class IncidentForm(PayloadForm):
    description = forms.CharField()
    photo_url = forms.CharField(max_length=500, required=False)


class IncidentUpdateForm(PayloadForm):
    description = forms.CharField(required=False)
    photo_url = forms.CharField(max_length=500, required=False)
    status = forms.ChoiceField(choices=AssetIncident.STATUS_CHOICES)

"""Forms validating account API payloads."""

from django import forms
from django.contrib.auth.password_validation import validate_password

from assets.models import School

from .models import CustomUser


class LoginForm(forms.Form):
    username = forms.CharField(max_length=254)
    password = forms.CharField(strip=False)


class PasswordMixin:
    def clean_password(self):
        password = self.cleaned_data.get("password", "")
        validate_password(password)
        return password


class RegistrationForm(PasswordMixin, forms.Form):
    full_name = forms.CharField(max_length=255)
    email = forms.EmailField()
    password = forms.CharField(strip=False, min_length=8)

    def clean_full_name(self):
        name = self.cleaned_data["full_name"].strip()
        if not name:
            raise forms.ValidationError("Full name is required.")
        return name

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if CustomUser.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("A user with this email already exists.")
        return email


class InvitationRegistrationForm(PasswordMixin, forms.Form):
    full_name = forms.CharField(max_length=255)
    password = forms.CharField(strip=False, min_length=8)
    invitation_token = forms.CharField(max_length=512)


class InvitationForm(forms.Form):
    email = forms.EmailField()
    role_id = forms.TypedChoiceField(
        coerce=int,
        choices=[
            (str(index), label)
            for index, (_slug, label) in enumerate(CustomUser.ROLE_CHOICES)
        ],
    )
    school_id = forms.ModelChoiceField(
        queryset=School.objects.all(),
        required=False,
        to_field_name="pk",
    )

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if CustomUser.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("A user with this email already exists.")
        return email

    def clean(self):
        cleaned = super().clean()
        role_id = cleaned.get("role_id")
        if role_id is None:
            return cleaned
        cleaned["role"] = CustomUser.role_for_id(role_id)
        if cleaned["role"] != "super_admin" and not cleaned.get("school_id"):
            self.add_error("school_id", "A school is required for this role.")
        return cleaned

"""
Sign-in and registration forms.
"""

from flask_wtf import FlaskForm
from wtforms import BooleanField, EmailField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, EqualTo, Length

from avrnpo.forms import clean_text, lower_email

MIN_PASSWORD = 8


class LoginForm(FlaskForm):
    email = EmailField(
        "Email",
        filters=[lower_email],
        validators=[DataRequired(message="Please enter your email."), Email()],
        render_kw={"placeholder": "name@example.com", "autocomplete": "email"},
    )
    password = PasswordField(
        "Password",
        validators=[DataRequired(message="Please enter your password.")],
        render_kw={"autocomplete": "current-password"},
    )


class RegistrationForm(FlaskForm):
    email = EmailField(
        "Email",
        filters=[lower_email],
        validators=[DataRequired(message="Please enter your email."), Email(), Length(max=254)],
        render_kw={"placeholder": "name@example.com", "autocomplete": "email"},
    )
    first_name = StringField(
        "First name",
        filters=[clean_text],
        validators=[DataRequired(message="Please enter your first name."), Length(max=100)],
    )
    last_name = StringField(
        "Last name",
        filters=[clean_text],
        validators=[DataRequired(message="Please enter your last name."), Length(max=100)],
    )
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(message="Please choose a password."),
            Length(min=MIN_PASSWORD, message=f"Password must be at least {MIN_PASSWORD} characters."),
        ],
        render_kw={"autocomplete": "new-password"},
    )
    password_confirmation = PasswordField(
        "Confirm password",
        validators=[DataRequired(), EqualTo("password", message="Passwords do not match.")],
        render_kw={"autocomplete": "new-password"},
    )
    accept_terms = BooleanField(
        "I accept the terms of use",
        validators=[DataRequired(message="You must accept the terms to register.")],
    )

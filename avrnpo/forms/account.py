"""
Profile, password and subscription forms for signed-in users.
"""

from flask_wtf import FlaskForm
from wtforms import HiddenField, PasswordField, StringField
from wtforms.validators import AnyOf, DataRequired, EqualTo, Length

from avrnpo.forms import clean_text
from avrnpo.forms.auth import MIN_PASSWORD


class ProfileForm(FlaskForm):
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


class PasswordChangeForm(FlaskForm):
    current_password = PasswordField(
        "Current password",
        validators=[DataRequired(message="Please enter your current password.")],
        render_kw={"autocomplete": "current-password"},
    )
    new_password = PasswordField(
        "New password",
        validators=[
            DataRequired(message="Please choose a new password."),
            Length(min=MIN_PASSWORD, message=f"Password must be at least {MIN_PASSWORD} characters."),
        ],
        render_kw={"autocomplete": "new-password"},
    )
    confirm_password = PasswordField(
        "Confirm new password",
        validators=[DataRequired(), EqualTo("new_password", message="Passwords do not match.")],
        render_kw={"autocomplete": "new-password"},
    )


class CancelSubscriptionForm(FlaskForm):
    confirm_cancel = HiddenField(
        validators=[AnyOf(["true"], message="Please confirm the cancellation.")],
    )

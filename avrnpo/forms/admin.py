"""
Back-office forms (user management).
"""

from flask_wtf import FlaskForm
from wtforms import EmailField, HiddenField, PasswordField, SelectField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from avrnpo.forms import clean_text, lower_email
from avrnpo.forms.auth import MIN_PASSWORD
from avrnpo.models.user import ROLE_USER, ROLES


class AdminUserForm(FlaskForm):
    email = EmailField(
        "Email",
        filters=[lower_email],
        validators=[DataRequired(message="Email is required"), Email(), Length(max=254)],
    )
    first_name = StringField("First name", filters=[clean_text], validators=[DataRequired(), Length(max=100)])
    last_name = StringField("Last name", filters=[clean_text], validators=[DataRequired(), Length(max=100)])
    role = SelectField("Role", choices=[(r, r.title()) for r in ROLES], default=ROLE_USER)
    # Required on create (enforced in the view); blank on edit keeps the current hash.
    password = PasswordField(
        "Password",
        validators=[Optional(), Length(min=MIN_PASSWORD, message=f"Password must be at least {MIN_PASSWORD} characters.")],
    )


class ConfirmDeleteForm(FlaskForm):
    confirm_delete = HiddenField(validators=[AnyOf(["true"], message="Please confirm the deletion.")])

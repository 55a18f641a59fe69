"""
Donation form: amount (preset or custom), frequency, donor contact and
billing address. Accepts either form posts or a JSON body.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from flask_wtf import FlaskForm
from wtforms import EmailField, SelectField, StringField, TelField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional as OptionalValidator, ValidationError

from avrnpo.forms import clean_text, lower_email
from avrnpo.models.donation import DONATION_TYPES, TYPE_ONE_TIME

PRESET_AMOUNTS = ("25", "50", "100", "250", "500", "1000")
MAX_AMOUNT = Decimal("100000")


def parse_amount(raw) -> Optional[Decimal]:
    """'$1,250.50' -> Decimal('1250.50'); None when blank or not a number."""
    s = str(raw if raw is not None else "").replace("$", "").replace(",", "").strip()
    if not s:
        return None
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value.quantize(Decimal("0.01"))


class DonationForm(FlaskForm):
    amount = StringField("Amount", render_kw={"placeholder": "Other amount", "inputmode": "decimal"})
    custom_amount = StringField("Custom amount", validators=[OptionalValidator()])
    donation_type = SelectField(
        "Frequency",
        choices=[(TYPE_ONE_TIME, "One-time"), ("monthly", "Monthly")],
        default=TYPE_ONE_TIME,
    )
    first_name = StringField(
        "First name",
        filters=[clean_text],
        validators=[DataRequired(message="First name is required"), Length(max=100)],
    )
    last_name = StringField(
        "Last name",
        filters=[clean_text],
        validators=[DataRequired(message="Last name is required"), Length(max=100)],
    )
    donor_email = EmailField(
        "Email",
        filters=[lower_email],
        validators=[
            DataRequired(message="Email address is required"),
            Email(message="Please enter a valid email address"),
            Length(max=254),
        ],
        render_kw={"placeholder": "name@example.com"},
    )
    donor_phone = TelField("Phone", filters=[clean_text], validators=[OptionalValidator(), Length(max=40)])
    address_line1 = StringField(
        "Address line 1",
        filters=[clean_text],
        validators=[DataRequired(message="Address Line 1 is required"), Length(max=200)],
    )
    address_line2 = StringField("Address line 2", filters=[clean_text], validators=[OptionalValidator(), Length(max=200)])
    city = StringField("City", filters=[clean_text], validators=[DataRequired(message="City is required"), Length(max=100)])
    state = StringField("State", filters=[clean_text], validators=[DataRequired(message="State is required"), Length(max=100)])
    zip_code = StringField(
        "ZIP code",
        filters=[clean_text],
        validators=[DataRequired(message="ZIP Code is required"), Length(max=20)],
    )
    comments = TextAreaField("Comments", filters=[clean_text], validators=[OptionalValidator(), Length(max=1000)])

    def validate_donation_type(self, field):
        if field.data not in DONATION_TYPES:
            raise ValidationError("Please select a valid donation type")

    def validate_amount(self, field):
        # A filled-in custom amount wins over the preset buttons.
        raw = self.custom_amount.data if parse_amount(self.custom_amount.data) is not None else field.data
        value = parse_amount(raw)
        if value is None:
            raise ValidationError("Donation amount is required")
        if value <= 0:
            raise ValidationError("Please enter a valid donation amount")
        if value > MAX_AMOUNT:
            raise ValidationError("Please contact us for donations above $100,000")

    @property
    def amount_value(self) -> Decimal:
        """Validated amount; only meaningful after validate()."""
        custom = parse_amount(self.custom_amount.data)
        return custom if custom is not None else parse_amount(self.amount.data) or Decimal("0")

    @property
    def donor_name(self) -> str:
        return f"{self.first_name.data or ''} {self.last_name.data or ''}".strip()

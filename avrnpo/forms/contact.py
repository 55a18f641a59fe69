from flask_wtf import FlaskForm
from wtforms import EmailField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length

from avrnpo.forms import clean_text, lower_email


class ContactForm(FlaskForm):
    name = StringField(
        "Name",
        filters=[clean_text],
        validators=[DataRequired(message="Name is required"), Length(max=100, message="Name is too long")],
    )
    email = EmailField(
        "Email",
        filters=[lower_email],
        validators=[
            DataRequired(message="Email is required"),
            Email(message="Please enter a valid email address"),
            Length(max=254),
        ],
    )
    subject = StringField(
        "Subject",
        filters=[clean_text],
        validators=[DataRequired(message="Subject is required"), Length(max=200, message="Subject is too long")],
    )
    message = TextAreaField(
        "Message",
        filters=[clean_text],
        validators=[DataRequired(message="Message is required"), Length(max=2000, message="Message is too long")],
        render_kw={"rows": 6},
    )

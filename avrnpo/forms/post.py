from flask_wtf import FlaskForm
from wtforms import BooleanField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional, Regexp

from avrnpo.forms import clean_text


class PostForm(FlaskForm):
    title = StringField(
        "Title",
        filters=[clean_text],
        validators=[DataRequired(message="Title is required"), Length(max=200)],
    )
    slug = StringField(
        "Slug",
        filters=[clean_text],
        validators=[
            Optional(),
            Length(max=120),
            Regexp(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", message="Use lowercase letters, numbers and dashes."),
        ],
        render_kw={"placeholder": "generated from the title when blank"},
    )
    excerpt = TextAreaField("Excerpt", filters=[clean_text], validators=[Optional(), Length(max=500)])
    content = TextAreaField("Content", validators=[DataRequired(message="Content is required")], render_kw={"rows": 16})
    published = BooleanField("Published")

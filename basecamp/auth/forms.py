"""Forms for the auth blueprint."""

from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField
from wtforms.validators import URL, DataRequired, Email, Length, Optional


class RegisterForm(FlaskForm):
    """Email sign-up form."""

    email = StringField(
        "Email",
        validators=[DataRequired(), Email()],
        render_kw={"autocomplete": "username"},
    )
    password = PasswordField(
        "Password",
        validators=[DataRequired(), Length(min=6)],
        render_kw={"autocomplete": "new-password"},
    )
    display_name = StringField(
        "Display Name", validators=[Optional(), Length(max=60)]
    )


class ProfileForm(FlaskForm):
    """Name and avatar shown to the squad. A blank photo URL removes it."""

    display_name = StringField(
        "Display Name", validators=[DataRequired(), Length(max=60)]
    )
    photo_url = StringField("Photo URL", validators=[Optional(), URL()])

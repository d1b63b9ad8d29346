"""Forms for the squad blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional

from basecamp.core.constants import INVITE_CODE_LENGTH, MAX_MESSAGE_LENGTH

from .services import MAX_ACTIVITY_LENGTH, MAX_SQUAD_NAME_LENGTH


class CreateSquadForm(FlaskForm):
    """Form for creating a new squad."""

    name = StringField(
        "Squad Name", validators=[DataRequired(), Length(max=MAX_SQUAD_NAME_LENGTH)]
    )


class JoinSquadForm(FlaskForm):
    """Form for joining a squad by invite code."""

    code = StringField(
        "Invite Code",
        validators=[
            DataRequired(),
            Length(min=INVITE_CODE_LENGTH, max=INVITE_CODE_LENGTH),
        ],
        filters=[lambda value: value.strip().upper() if value else value],
    )


class CurrentActivityForm(FlaskForm):
    """What the user is up to right now."""

    text = StringField(
        "Current Activity", validators=[Optional(), Length(max=MAX_ACTIVITY_LENGTH)]
    )


class MessageForm(FlaskForm):
    text = StringField(
        "Message", validators=[DataRequired(), Length(max=MAX_MESSAGE_LENGTH)]
    )

"""Forms for the events blueprint."""

from flask_wtf import FlaskForm
from wtforms import BooleanField, Field, SelectField, StringField, TextAreaField
from wtforms.validators import URL, DataRequired, Length, Optional, ValidationError
from wtforms.widgets import TextInput

from .models import DEFAULT_COLOR, EventColor, to_utc
from .services import MAX_COMMENT_LENGTH

# form field -> event document field
FIELD_NAMES = {
    "title": "title",
    "description": "description",
    "start_time": "startTime",
    "end_time": "endTime",
    "color": "color",
    "tags": "tags",
    "participants": "participants",
    "meeting_link": "meetingLink",
    "cover_photo": "coverPhoto",
    "is_all_day": "isAllDay",
}


class StringListField(Field):
    """A list of strings, sent either as repeated values or comma separated."""

    widget = TextInput()

    def _value(self):
        return ", ".join(self.data or [])

    def process_formdata(self, valuelist):
        values = []
        for raw in valuelist:
            items = raw if isinstance(raw, list) else str(raw).split(",")
            values.extend(str(item).strip() for item in items)
        self.data = [value for value in dict.fromkeys(values) if value]


def valid_instant(form, field):
    """Accept ISO 8601 date-times; naive values are taken as UTC."""
    if not field.data:
        return
    try:
        to_utc(field.data)
    except (TypeError, ValueError) as e:
        raise ValidationError("Not a valid date and time.") from e


class EventForm(FlaskForm):
    """Form for creating an event."""

    title = StringField("Title", validators=[DataRequired(), Length(max=120)])
    description = TextAreaField("Description", validators=[Optional()])
    start_time = StringField("Start", validators=[DataRequired(), valid_instant])
    end_time = StringField("End", validators=[DataRequired(), valid_instant])
    color = SelectField(
        "Color",
        choices=[(c.value, c.value.title()) for c in EventColor],
        default=DEFAULT_COLOR.value,
        validators=[Optional()],
    )
    tags = StringListField("Tags")
    participants = StringListField("Participants")
    meeting_link = StringField("Meeting Link", validators=[Optional(), URL()])
    cover_photo = StringField("Cover Photo", validators=[Optional()])
    is_all_day = BooleanField("All Day")

    def submitted_fields(self, submitted=None):
        """Event document fields taken from the form.

        With ``submitted`` (the keys present in the request) only those
        fields are returned, for merge-patch updates.
        """
        fields = {}
        for name, document_field in FIELD_NAMES.items():
            if submitted is not None and name not in submitted:
                continue
            fields[document_field] = getattr(self, name).data
        if submitted is None and not fields.get("participants"):
            fields.pop("participants", None)
        return fields


class EventPatchForm(EventForm):
    """Form for updating some fields of an event."""

    title = StringField("Title", validators=[Optional(), Length(max=120)])
    start_time = StringField("Start", validators=[Optional(), valid_instant])
    end_time = StringField("End", validators=[Optional(), valid_instant])
    color = SelectField(
        "Color",
        choices=[(c.value, c.value.title()) for c in EventColor],
        validate_choice=False,
        validators=[Optional()],
    )


class CommentForm(FlaskForm):
    """Form for commenting on an event."""

    text = TextAreaField(
        "Comment", validators=[DataRequired(), Length(max=MAX_COMMENT_LENGTH)]
    )

from flask_wtf import FlaskForm
from wtforms import DateTimeField, IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, ValidationError

DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
]


class GoalsField(IntegerField):
    """IntegerField that refuses fractions, booleans and nulls instead of coercing them"""

    def process_formdata(self, valuelist):
        if valuelist:
            raw = valuelist[0]
            if (
                raw is None
                or isinstance(raw, bool)
                or (isinstance(raw, float) and not raw.is_integer())
            ):
                self.data = None
                raise ValueError("Goals must be a whole number")
        super().process_formdata(valuelist)


class KickoffField(DateTimeField):
    def process_formdata(self, valuelist):
        if valuelist and not all(isinstance(value, str) for value in valuelist):
            self.data = None
            raise ValueError("Not a valid datetime value.")
        super().process_formdata(valuelist)


def score_field(label):
    return GoalsField(
        label, validators=[NumberRange(min=0, message="Goals must be zero or more")]
    )


class QuinielaForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(min=1, max=100)])


class MatchForm(FlaskForm):
    home_team = StringField("Home team", validators=[DataRequired(), Length(max=100)])
    away_team = StringField("Away team", validators=[DataRequired(), Length(max=100)])
    date = KickoffField("Date", format=DATE_FORMATS, validators=[DataRequired()])

    def validate_away_team(self, away_team):
        if (
            self.home_team.data
            and away_team.data
            and self.home_team.data.strip().lower() == away_team.data.strip().lower()
        ):
            raise ValidationError("A team cannot play against itself")


class MatchUpdateForm(MatchForm):
    """Partial update: every field may be left out"""

    home_team = StringField("Home team", validators=[Optional(), Length(max=100)])
    away_team = StringField("Away team", validators=[Optional(), Length(max=100)])
    date = KickoffField("Date", format=DATE_FORMATS, validators=[Optional()])


class ResultForm(FlaskForm):
    home_score = score_field("Home goals")
    away_score = score_field("Away goals")


class PredictionForm(FlaskForm):
    match_id = StringField("Match", validators=[DataRequired(), Length(max=32)])
    home_score = score_field("Home goals")
    away_score = score_field("Away goals")

from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import (
    DataRequired,
    Email,
    EqualTo,
    Length,
    Regexp,
    ValidationError,
)

from quiniela.models.user import ROLE_USER, User


def sanitize_input(text):
    """Trim user input; names are stored as typed and escaped where rendered"""
    if not text:
        return text
    return text.strip()


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me")


class RegistrationForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(),
            Length(min=2, max=100, message="Name must be between 2 and 100 characters"),
            Regexp(
                r"^[\w .'-]+$",
                message="Name contains invalid characters",
            ),
        ],
    )
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(),
            Length(min=8, message="Password must be at least 8 characters long"),
        ],
    )
    password2 = PasswordField(
        "Repeat Password",
        validators=[
            DataRequired(),
            EqualTo("password", message="Passwords must match"),
        ],
    )

    def validate_email(self, email):
        if User.get_by_email(email.data):
            raise ValidationError("Email already registered. Please log in instead.")


class RoleForm(FlaskForm):
    role = StringField(
        "Role",
        validators=[
            DataRequired(),
            Regexp(r"^(admin|user)$", message="Role must be 'admin' or 'user'"),
        ],
    )


class ActiveField(BooleanField):
    """Account status flag that keeps its current value when left out"""

    def process_formdata(self, valuelist):
        if valuelist:
            super().process_formdata(valuelist)


class UserEditForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(),
            Length(min=2, max=100, message="Name must be between 2 and 100 characters"),
            Regexp(r"^[\w .'-]+$", message="Name contains invalid characters"),
        ],
    )
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    is_active = ActiveField("Active")

    def __init__(self, *args, original_email=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.original_email = original_email

    def validate_email(self, email):
        if email.data.strip().lower() != self.original_email:
            if User.get_by_email(email.data):
                raise ValidationError(
                    "Email already registered. Please use a different email."
                )


class AdminUserForm(UserEditForm):
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(),
            Length(min=8, message="Password must be at least 8 characters long"),
        ],
    )
    role = StringField(
        "Role",
        default=ROLE_USER,
        validators=[
            DataRequired(),
            Regexp(r"^(admin|user)$", message="Role must be 'admin' or 'user'"),
        ],
    )
    is_active = ActiveField("Active", default=True)

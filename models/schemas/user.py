from marshmallow import EXCLUDE, Schema, fields, pre_load, validate


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip_strings(data, keep=("password",)):
    if not isinstance(data, dict):
        return data
    return {k: (v.strip() if isinstance(v, str) and k not in keep else v) for k, v in data.items()}


class RegisterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(
        required=True,
        validate=validate.Length(min=3, max=50, error="Username must be between 3 and 50 characters"),
        error_messages={"required": "Username is required"},
    )
    email = fields.Email(
        required=True,
        validate=validate.Length(max=100, error="Email must not exceed 100 characters"),
        error_messages={"required": "Email is required", "invalid": "Email must be valid"},
    )
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=6, max=100, error="Password must be between 6 and 100 characters"),
        error_messages={"required": "Password is required"},
    )
    first_name = fields.String(
        data_key="firstName",
        required=True,
        validate=validate.Length(min=1, max=50, error="First name is required and must not exceed 50 characters"),
        error_messages={"required": "First name is required"},
    )
    last_name = fields.String(
        data_key="lastName",
        required=True,
        validate=validate.Length(min=1, max=50, error="Last name is required and must not exceed 50 characters"),
        error_messages={"required": "Last name is required"},
    )
    phone_number = fields.String(
        data_key="phoneNumber",
        allow_none=True,
        load_default=None,
        validate=validate.Length(max=15, error="Phone number must not exceed 15 characters"),
    )

    @pre_load
    def normalize(self, data, **kwargs):
        data = _strip_strings(data)
        if isinstance(data, dict):
            # accept "phone" as a shorthand for phoneNumber
            if "phone" in data and "phoneNumber" not in data:
                data["phoneNumber"] = data.pop("phone")
            if "email" in data:
                data["email"] = _norm_email(data["email"])
        return data


class LoginSchema(Schema):
    """Flexible login: ``identifier`` is a username or an email.

    ``username`` or ``email`` are accepted in its place.
    """

    class Meta:
        unknown = EXCLUDE

    identifier = fields.String(
        required=True,
        validate=[
            validate.Length(min=1, error="Username or email is required"),
            validate.Length(max=100, error="Username or email must not exceed 100 characters"),
        ],
        error_messages={"required": "Username or email is required"},
    )
    password = fields.String(
        required=True,
        load_only=True,
        validate=[
            validate.Length(min=1, error="Password is required"),
            validate.Length(max=100, error="Password must not exceed 100 characters"),
        ],
        error_messages={"required": "Password is required"},
    )

    @pre_load
    def alias_identifier(self, data, **kwargs):
        data = _strip_strings(data)
        if isinstance(data, dict) and not data.get("identifier"):
            for alias in ("username", "email"):
                if data.get(alias):
                    data["identifier"] = data[alias]
                    break
        return data


class RefreshSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(
        data_key="refreshToken",
        required=True,
        validate=validate.Length(min=1, error="Refresh token is required"),
        error_messages={"required": "Refresh token is required"},
    )


class UserOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    email = fields.String()
    first_name = fields.String(data_key="firstName")
    last_name = fields.String(data_key="lastName")
    full_name = fields.String(data_key="fullName")
    phone_number = fields.String(data_key="phoneNumber", allow_none=True)
    active = fields.Boolean()
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
    last_login = fields.DateTime(data_key="lastLogin", allow_none=True)


class TokenPairOutSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    token_type = fields.String(data_key="tokenType")
    expires_in = fields.Integer(data_key="expiresIn")
    user = fields.Nested(UserOutSchema)

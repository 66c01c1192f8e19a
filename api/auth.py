"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- GET  /auth/validate
- POST /auth/logout
- GET  /auth/me
- GET  /auth/stats
- GET  /auth/health

Routes only parse input and shape output; AuthService does the work and
raises typed errors that api.errors maps to responses.
"""
from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, request

from models.schemas.user import (
    LoginSchema,
    RefreshSchema,
    RegisterSchema,
    TokenPairOutSchema,
    UserOutSchema,
)
from utils.decorators import bearer_token, login_required

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
user_out_schema = UserOutSchema()
token_pair_out_schema = TokenPairOutSchema()


def auth_service():
    return current_app.extensions["auth_service"]


def success(data, message: str, status: int = 200):
    return jsonify({"data": data, "message": message, "status": status}), status


@bp.post("/register")
def register():
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [username, email, password, firstName, lastName]
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            firstName: { type: string }
            lastName: { type: string }
            phoneNumber: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: Username or email already taken
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)
    user = auth_service().register(**data)
    return success(user_out_schema.dump(user), "User registered successfully", 201)


@bp.post("/login")
def login():
    """
    Login with username or email: returns access and refresh tokens
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             identifier: { type: string, description: username or email }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)
    pair = auth_service().login(data["identifier"], data["password"])
    return success(token_pair_out_schema.dump(pair), "Authentication successful")


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new token pair (single-use rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: New token pair
      401:
        description: Invalid, expired, reused or wrong-type token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)
    pair = auth_service().refresh(data["refresh_token"])
    return success(token_pair_out_schema.dump(pair), "Token refreshed successfully")


@bp.get("/validate")
def validate():
    """
    Validate the bearer token; always 200 with a boolean
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Validation result
    """
    token = bearer_token()
    if token is None:
        return success(False, "No token provided")
    valid = auth_service().validate(token)
    return success(valid, "Token validation completed" if valid else "Token is invalid")


@bp.post("/logout")
def logout():
    """
    Logout: revokes the bearer token until it expires
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      400:
        description: No token provided
    """
    token = bearer_token()
    if token is None:
        return jsonify(
            {
                "error": "MISSING_TOKEN",
                "message": "Authorization header missing",
                "status": 400,
                "path": request.path,
            }
        ), 400
    auth_service().logout(token)
    g.current_user = None
    return success("Logout successful", "User logged out successfully")


@bp.get("/me")
@login_required()
def me():
    """
    Get the current user's profile
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
      404:
        description: User not found
    """
    user = auth_service().get_current_user(g.current_user.username)
    return success(user_out_schema.dump(user), "Profile retrieved successfully")


@bp.get("/stats")
@login_required()
def stats():
    """
    User and revocation statistics
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return success(auth_service().statistics(), "Statistics retrieved successfully")


@bp.get("/health")
def health():
    """
    Auth service health check
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy
    """
    return success("Service is healthy", "Authentication service is running")

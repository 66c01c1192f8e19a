from flask import Blueprint, current_app

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            service:
              type: string
              example: auth-service
            revokedTokens:
              type: integer
              example: 3
    """
    registry = current_app.extensions["auth_service"].registry
    return {"status": "ok", "service": "auth-service", "revokedTokens": registry.count()}, 200

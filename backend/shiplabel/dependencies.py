"""
ShipLabel Backend - Route Dependencies
========================================

What:  FastAPI dependency callables shared by the route modules.
How:   Services live on app.state (set by create_app); these functions
       fetch them per request. Tests swap implementations by passing
       their own collaborators to create_app().
"""

from typing import Optional

from fastapi import Request

from shiplabel.exceptions import NotAuthenticatedError
from shiplabel.services.auth_service import AuthService
from shiplabel.services.label_service import LabelService

SESSION_LOGGED_IN = "logged_in"
SESSION_USER_ID = "user_id"


def get_label_service(request: Request) -> LabelService:
    return request.app.state.label_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def is_logged_in(request: Request) -> bool:
    return bool(request.session.get(SESSION_LOGGED_IN))


def require_session(request: Request) -> Optional[int]:
    """
    Session gate for protected routes.

    Returns:
        The logged-in user's id (None for a session written without one).

    Raises:
        NotAuthenticatedError: no session marker; handled as a redirect to /.
    """
    if not is_logged_in(request):
        raise NotAuthenticatedError(context={"path": request.url.path})
    return request.session.get(SESSION_USER_ID)

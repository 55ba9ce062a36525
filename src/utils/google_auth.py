"""Google OAuth authentication and the current-user session."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from src.utils.errors import AuthenticationError

logger = logging.getLogger(__name__)

SCOPES = [
    'openid',
    'https://www.googleapis.com/auth/userinfo.email',
    'https://www.googleapis.com/auth/userinfo.profile',
    'https://www.googleapis.com/auth/drive.file',
]

USERINFO_URL = 'https://www.googleapis.com/oauth2/v2/userinfo'


def create_flow(client_config: Dict[str, Any], redirect_uri: str) -> Flow:
    return Flow.from_client_config(
        client_config=client_config,
        scopes=SCOPES,
        redirect_uri=redirect_uri
    )


def get_authorization_url(client_config: Dict[str, Any], redirect_uri: str) -> str:
    """
    Generate Google OAuth authorization URL.

    Consent is forced so Google always hands out a refresh token.
    """
    authorization_url, _ = create_flow(client_config, redirect_uri).authorization_url(
        access_type='offline',
        include_granted_scopes='true',
        prompt='consent'
    )
    return authorization_url


def exchange_code_for_token(
    code: str,
    client_config: Dict[str, Any],
    redirect_uri: str
) -> Credentials:
    flow = create_flow(client_config, redirect_uri)
    flow.fetch_token(code=code)
    return flow.credentials


def credentials_to_dict(credentials: Credentials) -> Dict[str, Any]:
    return {
        'token': credentials.token,
        'refresh_token': credentials.refresh_token,
        'token_uri': credentials.token_uri,
        'client_id': credentials.client_id,
        'client_secret': credentials.client_secret,
        'scopes': credentials.scopes,
        'expiry': credentials.expiry.isoformat() if credentials.expiry else None
    }


def credentials_from_dict(creds_dict: Dict[str, Any]) -> Credentials:
    expiry = None
    if creds_dict.get('expiry'):
        expiry = datetime.fromisoformat(creds_dict['expiry'])

    return Credentials(
        token=creds_dict['token'],
        refresh_token=creds_dict.get('refresh_token'),
        token_uri=creds_dict.get('token_uri'),
        client_id=creds_dict.get('client_id'),
        client_secret=creds_dict.get('client_secret'),
        scopes=creds_dict.get('scopes'),
        expiry=expiry
    )


def revoke_credentials(credentials: Credentials) -> None:
    try:
        requests.post(
            'https://oauth2.googleapis.com/revoke',
            params={'token': credentials.token},
            headers={'content-type': 'application/x-www-form-urlencoded'},
            timeout=10,
        )
        logger.info("Credentials revoked successfully")
    except requests.RequestException as e:
        logger.warning(f"Failed to revoke credentials: {e}")


class AuthSession:
    """
    Current user of the app.

    Expired credentials are refreshed once per call to
    :meth:`current_user_id`. When there are no credentials, or the refresh
    fails, :class:`AuthenticationError` is raised and the user has to log in
    again; nothing here retries.
    """

    def __init__(self, credentials: Optional[Credentials], user_id: Optional[str] = None) -> None:
        self.credentials = credentials
        self._user_id = user_id

    @classmethod
    def from_dict(cls, creds_dict: Optional[Dict[str, Any]], user_id: Optional[str] = None) -> "AuthSession":
        return cls(credentials_from_dict(creds_dict) if creds_dict else None, user_id)

    def refresh(self) -> Credentials:
        """Refresh the access token, raising AuthenticationError on failure."""
        if self.credentials is None:
            raise AuthenticationError("No credentials in session")
        if not self.credentials.refresh_token:
            raise AuthenticationError("Credentials expired and cannot be refreshed")

        try:
            self.credentials.refresh(Request())
        except (RefreshError, TransportError) as e:
            logger.warning(f"Credential refresh failed: {e}")
            raise AuthenticationError(f"Credential refresh failed: {e}") from e

        logger.info("Refreshed credentials")
        return self.credentials

    def current_user_id(self) -> str:
        if self.credentials is None:
            raise AuthenticationError("Not logged in")
        if not self.credentials.valid:
            self.refresh()

        if self._user_id is None:
            self._user_id = get_user_info(self.credentials).get('email')
            if not self._user_id:
                raise AuthenticationError("User info has no email")
        return self._user_id

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return credentials_to_dict(self.credentials) if self.credentials else None


def get_user_info(credentials: Credentials) -> Dict[str, Any]:
    """
    Get user info from Google using credentials.

    Returns:
        Dictionary with user information (email, name, picture, etc.)
    """
    response = requests.get(
        USERINFO_URL,
        headers={'Authorization': f'Bearer {credentials.token}'},
        timeout=10,
    )
    if response.status_code == 401:
        raise AuthenticationError("Access token rejected by Google")
    response.raise_for_status()

    return response.json()

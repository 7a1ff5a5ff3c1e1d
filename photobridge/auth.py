from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
import structlog

from photobridge.config import SCOPES, SyncConfig
from photobridge.credentials import Credential
from photobridge.errors import CredentialAcquisitionError

log = structlog.stdlib.get_logger()

TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleAuthManager:
    """
    Turns a stored refresh token into a Google Photos bearer credential.
    """

    def __init__(self, client_id: str, client_secret: str, refresh_token: str = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token

    @classmethod
    def from_config(cls, config: SyncConfig):
        config.require_google()
        return cls(config.google_client_id, config.google_client_secret, config.google_refresh_token)

    def acquire(self) -> Credential:
        """
        Exchange the refresh token for an access token.
        """
        if not self.refresh_token:
            raise CredentialAcquisitionError("No Google refresh token configured. Run 'auth-google' first.")

        creds = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=SCOPES,
        )
        try:
            creds.refresh(Request())
        except GoogleAuthError as e:
            raise CredentialAcquisitionError(f"Failed to retrieve access token: {e}") from e

        if not creds.token:
            raise CredentialAcquisitionError("Failed to retrieve access token")
        return Credential(token=creds.token)

    def generate_refresh_token(self) -> str:
        """
        Run the installed-app consent flow in a browser and return a refresh token
        that can be stored as GOOGLE_REFRESH_TOKEN.
        """
        client_config = {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": TOKEN_URI,
            }
        }
        flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
        creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
        if not creds.refresh_token:
            raise CredentialAcquisitionError("Consent flow returned no refresh token")
        log.info("refresh_token_generated")
        return creds.refresh_token


def static_source_acquirer(config: SyncConfig):
    """
    Acquirer for the source catalog session. Logging in through the site is
    done outside photobridge; the resulting session cookie and sales id are
    read from the configuration.
    """
    def acquire() -> Credential:
        if not config.source_token:
            raise CredentialAcquisitionError(
                "No source session token configured. Set LOOKMEE_TOKEN or 'source_token' in the config file."
            )
        return Credential(token=config.source_token, account_id=config.source_account_id)

    return acquire

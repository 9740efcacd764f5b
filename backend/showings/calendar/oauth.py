"""Google OAuth client for connecting a manager's calendar (authlib Starlette integration)."""

from authlib.integrations.starlette_client import OAuth

from showings.config import settings

oauth = OAuth()

# Calendar access only; offline access is requested per authorization call.
oauth.register(
    name="google",
    client_id=settings.google_client_id,
    client_secret=settings.google_client_secret,
    server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
    client_kwargs={"scope": " ".join(settings.google_calendar_scopes)},
)


async def create_calendar_authorization(request, redirect_uri: str) -> str:
    """Build the consent URL and remember the OAuth state in the session.

    ``access_type=offline`` with ``prompt=consent`` makes Google return a
    refresh token every time the manager connects.
    """
    client = oauth.google
    data = await client.create_authorization_url(
        redirect_uri,
        access_type="offline",
        prompt="consent",
        include_granted_scopes="true",
    )
    await client.save_authorize_data(request, redirect_uri=redirect_uri, **data)
    return data["url"]


async def fetch_calendar_token(request) -> dict:
    """Exchange the callback's authorization code for a token dict."""
    return dict(await oauth.google.authorize_access_token(request))

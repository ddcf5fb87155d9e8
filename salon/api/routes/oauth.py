import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_drive, get_oauth_client, get_session, get_token_monitor, require_admin
from salon.api.schemas.oauth import OAuthStartOut, TokenStatusOut, TokenVerifyOut
from salon.core.security import create_oauth_state, decode_oauth_state
from salon.services import integration_token_service as integration_tokens
from salon.services.drive_service import DriveService
from salon.services.email_service import admin_panel_url, send_token_renewed_email
from salon.services.google_oauth import GoogleOAuthClient, OAuthError
from salon.services.token_monitor import TokenMonitor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/google-drive/start", response_model=OAuthStartOut, dependencies=[Depends(require_admin)])
async def start_google_drive_auth(oauth: GoogleOAuthClient = Depends(get_oauth_client)) -> OAuthStartOut:
    """Authorization URL the admin opens to grant Drive access again."""
    if not oauth.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google OAuth client is not configured",
        )
    state = create_oauth_state(integration_tokens.DRIVE_PROVIDER)
    logger.info("Google Drive authorization started")
    return OAuthStartOut(
        auth_url=oauth.authorization_url(state),
        message="Open this URL to authorize Google Drive",
    )


@router.get("/google/callback")
async def google_callback(
    background_tasks: BackgroundTasks,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
    drive: DriveService = Depends(get_drive),
    monitor: TokenMonitor = Depends(get_token_monitor),
) -> RedirectResponse:
    """Google redirects here after consent; stores the grant and returns to the admin panel."""
    if error:
        logger.error("Google authorization was denied: %s", error)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Google authorization failed: {error}")
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing authorization code")
    provider = decode_oauth_state(state or "")
    if not provider:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired authorization state")
    try:
        tokens = await oauth.exchange_code(code)
    except OAuthError as e:
        logger.error("Google authorization code exchange failed: %s", e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not complete Google authorization") from e
    if not tokens.refresh_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Google did not return a refresh token")

    await integration_tokens.save_token(
        session, provider, tokens.refresh_token, tokens.access_token, tokens.expires_at
    )
    if provider == integration_tokens.DRIVE_PROVIDER:
        drive.use_refresh_token(tokens.refresh_token)
        monitor.mark_authorized()
    background_tasks.add_task(send_token_renewed_email, provider)
    return RedirectResponse(f"{admin_panel_url()}?token_renewed={provider}", status_code=status.HTTP_302_FOUND)


@router.get("/status", response_model=TokenStatusOut, dependencies=[Depends(require_admin)])
async def token_status(session: AsyncSession = Depends(get_session)) -> TokenStatusOut:
    pending = await integration_tokens.providers_needing_auth(session)
    return TokenStatusOut(
        tokens_needing_auth=pending,
        message="Some integrations need re-authorization" if pending else "All integrations are authorized",
    )


@router.post("/verify/{provider}", response_model=TokenVerifyOut, dependencies=[Depends(require_admin)])
async def verify_token(
    provider: str,
    session: AsyncSession = Depends(get_session),
    monitor: TokenMonitor = Depends(get_token_monitor),
) -> TokenVerifyOut:
    """Check a stored grant now. Drive grants are refreshed against Google."""
    stored = await integration_tokens.get_token(session, provider)
    if stored is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No token stored for {provider}")
    if provider == integration_tokens.DRIVE_PROVIDER:
        result = await monitor.check_once()
        needs_auth, checked_at = result.needs_reauth, result.last_checked_at
    else:
        await integration_tokens.update_token_check(session, provider, True)
        needs_auth, checked_at = False, None
    return TokenVerifyOut(
        provider=provider,
        needs_auth=needs_auth,
        last_checked_at=checked_at,
        message=f"{provider} needs re-authorization" if needs_auth else f"{provider} token is valid",
    )

# src/todo_reminder/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

try:
    import olm  # type: ignore  # noqa: F401

    OLM_AVAILABLE = True
except Exception:
    OLM_AVAILABLE = False

SESSION_FILE = "session.json"


@dataclass(frozen=True, slots=True)
class MatrixSession:
    """Credentials persisted after the first password login."""

    user_id: str
    device_id: str
    access_token: str

    @classmethod
    def load(cls, path: Path) -> MatrixSession | None:
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
            session = cls(
                user_id=str(data["user_id"]),
                device_id=str(data["device_id"]),
                access_token=str(data["access_token"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable Matrix session file %s: %r", path, e)
            return None
        if not (session.user_id and session.device_id and session.access_token):
            logger.warning("Ignoring incomplete Matrix session file %s", path)
            return None
        return session

    def save(self, path: Path) -> None:
        # Holds an access token: write atomically, owner-only.
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(asdict(self)), "utf-8")
        os.replace(tmp, path)
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.debug("chmod 600 failed for %s", path, exc_info=True)


async def _password_login(client: AsyncClient, settings, session_file: Path) -> bool:
    password = (getattr(settings, "matrix_password", "") or "").strip()
    if not password:
        logger.error(
            "No Matrix session at %s and TODO_MATRIX_PASSWORD is not set; "
            "set it once to bootstrap a session.",
            session_file,
        )
        return False

    device_name = f"{getattr(settings, 'app_name', 'todo')} reminders"
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        return False

    try:
        MatrixSession(user_id=resp.user_id, device_id=resp.device_id, access_token=resp.access_token).save(
            session_file
        )
    except OSError as e:
        # Still usable for this run; the next start will log in again.
        logger.error("Failed to save Matrix session to %s: %r", session_file, e)
    else:
        logger.info("Matrix session saved for %s (device=%s)", resp.user_id, resp.device_id)
    return True


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Build a logged-in AsyncClient for posting reminders, or None when Matrix is
    not configured or login fails.

    The session file under the (gitignored) Matrix store keeps the access token,
    so the password is only needed for the first start.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TODO_MATRIX_HOMESERVER and TODO_MATRIX_USER_ID")
        return None

    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/todo/matrix_store")))
    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = store_dir / SESSION_FILE

    if not OLM_AVAILABLE:
        logger.warning("python-olm not installed: reminders can only be posted to unencrypted rooms")

    client = AsyncClient(
        homeserver,
        user_id,
        store_path=str(store_dir) if OLM_AVAILABLE else "",
        config=AsyncClientConfig(encryption_enabled=OLM_AVAILABLE, store_sync_tokens=True),
    )

    session = MatrixSession.load(session_file)
    if session is not None:
        # Also loads the E2EE store when encryption is enabled.
        client.restore_login(session.user_id, session.device_id, session.access_token)
        logger.info("Matrix session restored for %s", session.user_id)
        return client

    if not await _password_login(client, settings, session_file):
        await client.close()
        return None
    return client
